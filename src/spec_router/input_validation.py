"""
Request input validation and the post-handler output check.

The validator step runs the header, query, params and body schemas of a route
in that order, writes the casted values back onto the context and, once the
rest of the chain has finished, validates the response against the route's
output rules.
"""

import logging
from typing import Any, Optional

from . import metrics
from .context import Context, merge_into
from .errors import HTTPError, ValidationError
from .output_validation import OutputValidator
from .schemas import ValidatorBuilder, pydantic_validator

logger = logging.getLogger(__name__)

INPUT_CATEGORIES = ("header", "query", "params", "body")


def capture_error(ctx: Context, category: str, error: HTTPError):
    """Record a request-time error in ``ctx.invalid`` under category."""
    ctx.invalid[category] = error


class InputValidator:
    """
    Middleware step validating request input for one route.

    Args:
        validate_spec: the route's ValidateSpec
        validator_builder: turns each schema into an async validator
    """

    def __init__(self, validate_spec, validator_builder: ValidatorBuilder = pydantic_validator):
        self.spec = validate_spec
        self.failure = validate_spec.failure
        self.continue_on_error = validate_spec.continue_on_error

        self.validators = {}
        for category in INPUT_CATEGORIES:
            schema = getattr(validate_spec, category)
            if schema is not None:
                self.validators[category] = validator_builder(schema)

        self.output_validator: Optional[OutputValidator] = None
        if validate_spec.output is not None:
            self.output_validator = OutputValidator(validate_spec.output, validator_builder)

    @staticmethod
    def _read(category: str, ctx: Context) -> Any:
        if category == "params":
            return ctx.params
        return getattr(ctx.request, category)

    @staticmethod
    def _write(category: str, ctx: Context, value: Any):
        if category in ("header", "query"):
            merge_into(getattr(ctx.request, category), value or {})
        elif category == "params":
            ctx.params = value
        else:
            ctx.request.body = value

    async def validate_input(self, category: str, ctx: Context) -> Optional[ValidationError]:
        """Validate one category, writing the casted value back on success."""
        validator = self.validators.get(category)
        if validator is None:
            return None

        result = await validator(self._read(category, ctx))
        if result.error is not None:
            return ValidationError.from_schema_error(
                result.error, self.failure, category=category
            )

        self._write(category, ctx, result.value)
        return None

    async def validate(self, ctx: Context) -> Optional[ValidationError]:
        """
        Run every declared category in order.

        Failures are recorded in ``ctx.invalid``. Without continue_on_error
        the first failure stops the run; with it the remaining categories are
        still checked.

        Returns:
            The first error, or None when all categories passed
        """
        first_error = None

        for category in INPUT_CATEGORIES:
            error = await self.validate_input(category, ctx)
            if error is None:
                continue

            logger.info(f"{ctx.method} {ctx.path}: invalid {category}: {error.msg}")
            metrics.record_validation_failure("input", category)
            capture_error(ctx, category, error)

            if first_error is None:
                first_error = error
            if not self.continue_on_error:
                break

        return first_error

    async def __call__(self, ctx: Context, next):
        error = await self.validate(ctx)
        if error is not None and not self.continue_on_error:
            raise error

        await next()

        if self.output_validator is None:
            return

        output_error = await self.output_validator.validate(ctx)
        if output_error is not None:
            ctx.status = 500
            error = ValidationError.from_schema_error(output_error, 500, category="output")
            logger.warning(f"{ctx.method} {ctx.path}: invalid response: {error.msg}")
            metrics.record_validation_failure("output", "output")
            raise error
