"""
Spec router.

Routes are registered from declarative specs and served by a Starlette router.
Each route runs a fixed chain: router middleware, param middleware, ``pre``
handlers, the body parser, the input validator, and finally the route handlers.
Output validation runs inside the validator step once the handlers are done.
"""

import inspect
import logging
import re
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Pattern

from starlette.responses import PlainTextResponse
from starlette.routing import BaseRoute, Match, NoMatchFound, Route, request_response
from starlette.routing import Router as StarletteRouter

from . import metrics
from .body_parser import make_body_parser
from .context import Context
from .errors import ConfigError
from .input_validation import InputValidator
from .middleware import MiddlewareChain, Middleware, as_middleware, error_response
from .schemas import ValidatorBuilder, pydantic_validator
from .settings import RouterSettings
from .spec import RouteSpec, normalize_spec

logger = logging.getLogger(__name__)

_PARAM_PATTERN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def to_starlette_path(path: str) -> str:
    """Translate ``/users/:id`` into Starlette's ``/users/{id}``."""
    return _PARAM_PATTERN.sub(r"{\1}", path)


def join_prefix(prefix: str, path: str) -> str:
    if not prefix:
        return path
    prefix = prefix.rstrip("/")
    if path == "/":
        return prefix or "/"
    return prefix + path


class RegexRoute(BaseRoute):
    """
    Route matching a compiled regular expression against the request path.

    Named groups become params under their names, unnamed groups are exposed
    by position as ``"0"``, ``"1"`` and so on.
    """

    def __init__(self, pattern: Pattern, endpoint: Callable, methods: List[str]):
        self.pattern = pattern
        self.endpoint = endpoint
        self.name = getattr(endpoint, "__name__", None)
        self.methods = {method.upper() for method in methods}
        if "GET" in self.methods:
            self.methods.add("HEAD")
        self.app = request_response(endpoint)

        names = {index: name for name, index in pattern.groupindex.items()}
        self._group_keys = []
        position = 0
        for index in range(1, pattern.groups + 1):
            if index in names:
                self._group_keys.append(names[index])
            else:
                self._group_keys.append(str(position))
                position += 1

    def _route_path(self, scope) -> str:
        path = scope["path"]
        root_path = scope.get("root_path", "")
        if root_path and path.startswith(root_path):
            path = path[len(root_path):]
        return path or "/"

    def matches(self, scope):
        if scope["type"] != "http":
            return Match.NONE, {}

        match = self.pattern.search(self._route_path(scope))
        if match is None:
            return Match.NONE, {}

        params = dict(scope.get("path_params", {}))
        for key, value in zip(self._group_keys, match.groups()):
            if value is not None:
                params[key] = value
        child_scope = {"endpoint": self.endpoint, "path_params": params}

        if scope["method"] not in self.methods:
            return Match.PARTIAL, child_scope
        return Match.FULL, child_scope

    async def handle(self, scope, receive, send):
        if scope["method"] not in self.methods:
            headers = {"Allow": ", ".join(sorted(self.methods))}
            response = PlainTextResponse("Method Not Allowed", status_code=405, headers=headers)
            await response(scope, receive, send)
        else:
            await self.app(scope, receive, send)

    def url_path_for(self, name, /, **path_params):
        raise NoMatchFound(name, path_params)

    def __repr__(self) -> str:
        return f"RegexRoute(pattern={self.pattern.pattern!r}, methods={sorted(self.methods)!r})"


class CompiledRoute:
    """A normalized spec with its per-route steps built."""

    def __init__(self, spec: RouteSpec, steps: List[Middleware]):
        self.spec = spec
        self.steps = steps


class Router:
    """
    Registers spec routes and exposes them as an ASGI app.

    Example:
        router = Router()
        router.get("/users/:id", {"validate": {"params": {"id": int}}}, show_user)
        app.mount("/", router.middleware())
    """

    def __init__(
        self,
        validator_builder: ValidatorBuilder = pydantic_validator,
        settings: Optional[RouterSettings] = None,
    ):
        self.validator_builder = validator_builder
        self.settings = settings or RouterSettings()
        self.routes: List[RouteSpec] = []
        self._compiled: List[CompiledRoute] = []
        self._prefix = ""
        self._middleware: List[Middleware] = []
        self._params: Dict[str, List[Callable]] = {}
        self._app: Optional[StarletteRouter] = None

    def route(self, spec: Any) -> "Router":
        """Add a route spec, or a list of them."""
        if isinstance(spec, (list, tuple)):
            for item in spec:
                self.add_route(item)
        else:
            self.add_route(spec)
        return self

    def add_route(self, spec: Any) -> RouteSpec:
        """
        Validate and compile a single route.

        Schemas, output rules and the body parser are built here so that
        configuration errors surface at registration.

        Raises:
            ConfigError: if the route spec is invalid
        """
        spec = normalize_spec(spec, self.settings)

        steps: List[Middleware] = [as_middleware(fn, "pre handler") for fn in spec.pre]
        body_parser = make_body_parser(spec, self.settings)
        if body_parser is not None:
            steps.append(body_parser)
        if spec.validate is not None:
            steps.append(InputValidator(spec.validate, self.validator_builder))
        steps.extend(as_middleware(fn) for fn in spec.handler)

        self.routes.append(spec)
        self._compiled.append(CompiledRoute(spec, steps))
        self._app = None

        logger.debug("add %s %s", " ".join(spec.method), getattr(spec.path, "pattern", spec.path))
        return spec

    def _verb(self, method: str, path, args) -> "Router":
        config: Mapping[str, Any] = {}
        handlers = list(args)
        if handlers and isinstance(handlers[0], Mapping):
            config = handlers.pop(0)

        spec = dict(config)
        spec.update(path=path, method=method, handler=handlers)
        return self.route(spec)

    def get(self, path, *args) -> "Router":
        return self._verb("get", path, args)

    def post(self, path, *args) -> "Router":
        return self._verb("post", path, args)

    def put(self, path, *args) -> "Router":
        return self._verb("put", path, args)

    def patch(self, path, *args) -> "Router":
        return self._verb("patch", path, args)

    def delete(self, path, *args) -> "Router":
        return self._verb("delete", path, args)

    del_ = delete

    def options(self, path, *args) -> "Router":
        return self._verb("options", path, args)

    def head(self, path, *args) -> "Router":
        return self._verb("head", path, args)

    def prefix(self, prefix: str) -> "Router":
        """Prefix every string route path, including routes already added."""
        if not isinstance(prefix, str):
            raise ConfigError("router prefix must be a string")
        self._prefix = prefix
        self._app = None
        return self

    def use(self, *middleware: Callable) -> "Router":
        """Run middleware before the steps of every route."""
        for fn in middleware:
            self._middleware.append(as_middleware(fn, "router middleware"))
        self._app = None
        return self

    def param(self, name: str, fn: Callable) -> "Router":
        """
        Run ``fn(value, ctx, next)`` for routes that capture param ``name``.

        Param middleware runs after router middleware and before ``pre``.
        """
        if not callable(fn):
            raise ConfigError(f"param middleware for {name} must be callable")
        self._params.setdefault(name, []).append(fn)
        self._app = None
        return self

    def _param_middleware(self) -> List[Middleware]:
        steps = []
        for name, handlers in self._params.items():
            for fn in handlers:
                steps.append(_bind_param(name, fn))
        return steps

    def _endpoint(self, spec: RouteSpec, chain: MiddlewareChain) -> Callable:
        settings = self.settings

        async def endpoint(request):
            started = time.perf_counter()
            ctx = Context(request, spec)
            try:
                await chain(ctx)
                response = ctx.to_response()
            except Exception as e:
                response = error_response(e, settings)
            finally:
                await ctx.close()

            metrics.record_request(
                request.method, response.status_code, time.perf_counter() - started
            )
            return response

        return endpoint

    def build_routes(self) -> List[BaseRoute]:
        """Build one Starlette route per registered spec."""
        shared = self._middleware + self._param_middleware()
        routes: List[BaseRoute] = []

        for compiled in self._compiled:
            spec = compiled.spec
            chain = MiddlewareChain(shared + compiled.steps)
            endpoint = self._endpoint(spec, chain)
            methods = [method.upper() for method in spec.method]

            if isinstance(spec.path, str):
                path = to_starlette_path(join_prefix(self._prefix, spec.path))
                routes.append(Route(path, endpoint=endpoint, methods=methods))
            else:
                routes.append(RegexRoute(spec.path, endpoint, methods))

        return routes

    def middleware(self) -> StarletteRouter:
        """Return the ASGI app serving every registered route."""
        if self._app is None:
            self._app = StarletteRouter(routes=self.build_routes())
        return self._app

    async def __call__(self, scope, receive, send):
        await self.middleware()(scope, receive, send)


def _bind_param(name: str, fn: Callable) -> Middleware:
    async def param_middleware(ctx: Context, next):
        if name not in ctx.params:
            await next()
            return
        result = fn(ctx.params[name], ctx, next)
        if inspect.isawaitable(result):
            await result

    param_middleware.__name__ = f"param_{name}"
    return param_middleware
