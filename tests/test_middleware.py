"""
Tests for the middleware chain and error responses.
"""

import json

import pytest

from spec_router.errors import ConfigError, ParseError, ValidationError
from spec_router.middleware import MiddlewareChain, as_middleware, error_response
from spec_router.settings import RouterSettings


class TestMiddlewareChain:
    """Test nested composition"""

    @pytest.mark.asyncio
    async def test_runs_in_order_and_unwinds(self):
        order = []

        async def first(ctx, next):
            order.append("first:before")
            await next()
            order.append("first:after")

        async def second(ctx, next):
            order.append("second")
            await next()

        chain = MiddlewareChain().add_middleware(first).add_middleware(second)
        await chain({})

        assert order == ["first:before", "second", "first:after"]
        assert len(chain) == 2

    @pytest.mark.asyncio
    async def test_short_circuit(self):
        order = []

        async def stop(ctx, next):
            order.append("stop")

        async def never(ctx, next):
            order.append("never")

        await MiddlewareChain([stop, never])({})

        assert order == ["stop"]

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        async def fail(ctx, next):
            raise ParseError(400, "bad")

        with pytest.raises(ParseError):
            await MiddlewareChain([fail])({})

    @pytest.mark.asyncio
    async def test_next_twice_is_an_error(self):
        async def twice(ctx, next):
            await next()
            await next()

        with pytest.raises(RuntimeError):
            await MiddlewareChain([twice])({})

    @pytest.mark.asyncio
    async def test_sync_middleware(self):
        seen = []

        def sync_step(ctx, next):
            seen.append(ctx["id"])
            return next()

        await MiddlewareChain([sync_step])({"id": 1})

        assert seen == [1]

    @pytest.mark.asyncio
    async def test_outer_next(self):
        seen = []

        async def outer_next():
            seen.append("outer")

        async def step(ctx, next):
            await next()

        await MiddlewareChain([step])({}, outer_next)

        assert seen == ["outer"]


class TestAsMiddleware:
    """Test handler adaptation"""

    @pytest.mark.asyncio
    async def test_ctx_only_handler_is_terminal(self):
        ctx = {}

        def handler(ctx):
            ctx["handled"] = True

        async def never(ctx, next):
            ctx["reached"] = True

        await MiddlewareChain([as_middleware(handler), never])(ctx)

        assert ctx == {"handled": True}

    @pytest.mark.asyncio
    async def test_async_ctx_only_handler(self):
        ctx = {}

        async def handler(ctx):
            ctx["handled"] = True

        await as_middleware(handler)(ctx, None)

        assert ctx["handled"]

    def test_two_argument_handler_is_kept(self):
        async def handler(ctx, next):
            await next()

        assert as_middleware(handler) is handler

    def test_not_callable(self):
        with pytest.raises(ConfigError):
            as_middleware("handler")


class TestErrorResponse:
    """Test error envelope rendering"""

    def test_http_error(self):
        error = ValidationError(422, "q: bad", details=[{"loc": ["q"]}], category="query")

        response = error_response(error, RouterSettings())
        data = json.loads(response.body)

        assert response.status_code == 422
        assert data["success"] is False
        assert data["error_code"] == "VALIDATION_ERROR"
        assert data["message"] == "q: bad"
        assert data["details"] == [{"loc": ["q"]}]
        assert "timestamp" in data

    def test_hidden_details(self):
        error = ValidationError(400, "bad", details={"secret": True})

        response = error_response(error, RouterSettings(expose_error_details=False))

        assert "details" not in json.loads(response.body)

    def test_unexpected_error(self):
        response = error_response(KeyError("missing"), RouterSettings())
        data = json.loads(response.body)

        assert response.status_code == 500
        assert data["error_code"] == "INTERNAL_ERROR"
        assert data["details"] == "An unexpected error occurred"
