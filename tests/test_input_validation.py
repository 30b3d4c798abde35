"""
Tests for request input validation and the validator middleware step.
"""

import pytest
from pydantic import Field
from typing_extensions import Annotated, NotRequired

from spec_router.errors import ValidationError
from spec_router.input_validation import INPUT_CATEGORIES, InputValidator
from spec_router.spec import ValidateSpec

Between5And8 = Annotated[int, Field(ge=5, le=8)]


async def noop():
    return None


class TestValidateInput:
    """Test casting and write-back per category"""

    @pytest.mark.asyncio
    async def test_header_values_are_merged(self, make_context):
        ctx = make_context(headers={"X-Count": "5", "User-Agent": "pytest"})
        validator = InputValidator(ValidateSpec(header={"x-count": int}))

        error = await validator.validate(ctx)

        assert error is None
        assert ctx.request.header["x-count"] == 5
        assert ctx.request.header["user-agent"] == "pytest"

    @pytest.mark.asyncio
    async def test_query_is_cast(self, make_context):
        ctx = make_context(query_string="q=6&tag=a&tag=b")
        validator = InputValidator(ValidateSpec(query={"q": Between5And8, "tag": NotRequired[list]}))

        error = await validator.validate(ctx)

        assert error is None
        assert ctx.request.query["q"] == 6
        assert ctx.request.query["tag"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_params_are_replaced(self, make_context):
        ctx = make_context(path_params={"id": "42"})
        validator = InputValidator(ValidateSpec(params={"id": int}))

        await validator.validate(ctx)

        assert ctx.params == {"id": 42}

    @pytest.mark.asyncio
    async def test_body_is_replaced(self, make_context):
        ctx = make_context()
        ctx.request.body = {"age": "30", "name": "Ada"}
        validator = InputValidator(ValidateSpec(type="json", body={"age": int, "name": str}))

        await validator.validate(ctx)

        assert ctx.request.body == {"age": 30, "name": "Ada"}

    @pytest.mark.asyncio
    async def test_undeclared_categories_are_skipped(self, make_context):
        ctx = make_context(query_string="q=raw")
        validator = InputValidator(ValidateSpec(params={"id": NotRequired[int]}))

        error = await validator.validate(ctx)

        assert error is None
        assert ctx.request.query == {"q": "raw"}
        assert ctx.invalid == {}


class TestValidationFailures:
    """Test failure status, capture and continue_on_error"""

    @pytest.mark.asyncio
    async def test_default_failure_status(self, make_context):
        ctx = make_context(query_string="q=4")
        validator = InputValidator(ValidateSpec(query={"q": Between5And8}))

        error = await validator.validate(ctx)

        assert isinstance(error, ValidationError)
        assert error.status == 400
        assert error.category == "query"
        assert error.msg.startswith("q:")
        assert ctx.invalid["query"] is error

    @pytest.mark.asyncio
    async def test_custom_failure_status(self, make_context):
        ctx = make_context(query_string="q=x")
        validator = InputValidator(ValidateSpec(query={"q": int}, failure=422))

        error = await validator.validate(ctx)

        assert error.status == 422

    @pytest.mark.asyncio
    async def test_stops_at_first_failure(self, make_context):
        ctx = make_context(headers={"X-Count": "many"}, query_string="q=6")
        validator = InputValidator(ValidateSpec(header={"x-count": int}, query={"q": int}))

        error = await validator.validate(ctx)

        assert error.category == "header"
        assert list(ctx.invalid) == ["header"]
        assert ctx.request.query["q"] == "6"

    @pytest.mark.asyncio
    async def test_continue_on_error_checks_every_category(self, make_context):
        ctx = make_context(
            headers={"X-Count": "many"},
            query_string="q=4",
            path_params={"id": "7"},
        )
        validator = InputValidator(
            ValidateSpec(
                header={"x-count": int},
                query={"q": Between5And8},
                params={"id": int},
                continue_on_error=True,
            )
        )

        error = await validator.validate(ctx)

        assert error.category == "header"
        assert set(ctx.invalid) == {"header", "query"}
        assert ctx.params == {"id": 7}

    def test_category_order(self):
        assert INPUT_CATEGORIES == ("header", "query", "params", "body")


class TestValidatorMiddleware:
    """Test the validator as a chain step"""

    @pytest.mark.asyncio
    async def test_aborts_before_handler(self, make_context):
        called = []
        ctx = make_context(query_string="q=1")
        validator = InputValidator(ValidateSpec(query={"q": Between5And8}))

        async def next():
            called.append(True)

        with pytest.raises(ValidationError):
            await validator(ctx, next)

        assert called == []

    @pytest.mark.asyncio
    async def test_continue_on_error_runs_handler(self, make_context):
        called = []
        ctx = make_context(query_string="q=1")
        validator = InputValidator(
            ValidateSpec(query={"q": Between5And8}, continue_on_error=True)
        )

        async def next():
            called.append(ctx.invalid["query"].status)

        await validator(ctx, next)

        assert called == [400]

    @pytest.mark.asyncio
    async def test_output_is_cast_after_handler(self, make_context):
        ctx = make_context()
        validator = InputValidator(ValidateSpec(output={200: {"body": {"n": int}}}))

        async def next():
            ctx.body = {"n": "3"}

        await validator(ctx, next)

        assert ctx.body == {"n": 3}
        assert ctx.status == 200

    @pytest.mark.asyncio
    async def test_invalid_output_forces_500(self, make_context):
        ctx = make_context()
        validator = InputValidator(ValidateSpec(output={"200-299": {"body": {"n": int}}}))

        async def next():
            ctx.status = 201
            ctx.body = {"n": "three"}

        with pytest.raises(ValidationError) as exc_info:
            await validator(ctx, next)

        assert exc_info.value.status == 500
        assert exc_info.value.category == "output"
        assert ctx.status == 500

    @pytest.mark.asyncio
    async def test_handler_error_skips_output_validation(self, make_context):
        ctx = make_context()
        validator = InputValidator(ValidateSpec(output={"*": {"body": {"n": int}}}))

        async def next():
            ctx.body = {"n": "three"}
            raise RuntimeError("handler failed")

        with pytest.raises(RuntimeError):
            await validator(ctx, next)

        assert ctx.status == 200

    @pytest.mark.asyncio
    async def test_no_validate_rules(self, make_context):
        ctx = make_context()
        validator = InputValidator(ValidateSpec())

        await validator(ctx, noop)

        assert ctx.invalid == {}
