"""
Output validation keyed on response status.

Each rule covers one or more status ranges (``"200"``, ``"400-499"``,
``"201,204"``, ``"*"``) and carries a body and/or headers schema. Rules of one
route may not overlap, so at most one rule ever applies to a response.
"""

import logging
from typing import Any, List, Mapping, Optional, Union

from .errors import ConfigError
from .schemas import ValidatorBuilder, pydantic_validator
from .status_range import StatusRange, parse_range

logger = logging.getLogger(__name__)


def tokenize_ranges(status: str) -> List[StatusRange]:
    """Split a comma separated status expression into ranges."""
    tokens = [token.strip() for token in status.split(",")]
    return [parse_range(token) for token in tokens if token]


class OutputValidationRule:
    """A status expression bound to body/headers schemas."""

    def __init__(
        self,
        status: Union[str, int],
        spec: Mapping[str, Any],
        validator_builder: ValidatorBuilder = pydantic_validator,
    ):
        if isinstance(status, int) and not isinstance(status, bool):
            status = str(status)
        if not status or not isinstance(status, str):
            raise ConfigError("output validation status code is required")
        if spec is None:
            raise ConfigError(f"output validation spec is missing for {status}")
        if not isinstance(spec, Mapping):
            raise ConfigError(f"output validation spec for {status} must be a mapping")

        self.status = status
        self.spec = spec
        self.ranges = tokenize_ranges(status)

        if not self.ranges:
            raise ConfigError(f"invalid output validation status: {status!r}")
        if spec.get("body") is None and spec.get("headers") is None:
            raise ConfigError(
                f"output validation for {status} requires a body or headers schema"
            )

        self.body_validator = (
            validator_builder(spec["body"]) if spec.get("body") is not None else None
        )
        self.header_validator = (
            validator_builder(spec["headers"]) if spec.get("headers") is not None else None
        )

    def overlaps(self, other: "OutputValidationRule") -> bool:
        """Check whether any range of this rule intersects any range of other."""
        return any(
            mine.overlaps(theirs) for mine in self.ranges for theirs in other.ranges
        )

    def matches(self, status: int) -> bool:
        return any(r.contains(status) for r in self.ranges)

    async def validate(self, ctx) -> Optional[Any]:
        """
        Validate the response held by ctx.

        Headers are checked first; the body is not checked when they fail.
        Casted values replace the originals on success.

        Returns:
            The validator error, or None when the response is valid
        """
        if self.header_validator is not None:
            result = await self.header_validator(dict(ctx.response.headers.items()))
            if result.error is not None:
                return result.error
            if result.value:
                ctx.set(result.value)

        if self.body_validator is not None:
            result = await self.body_validator(ctx.body)
            if result.error is not None:
                return result.error
            ctx.response.replace_body(result.value)

        return None

    def __str__(self) -> str:
        return self.status

    def __repr__(self) -> str:
        return f"OutputValidationRule({self.status!r})"


class OutputValidator:
    """Ordered, non-overlapping output rules of a single route."""

    def __init__(
        self,
        output: Mapping[Union[str, int], Mapping[str, Any]],
        validator_builder: ValidatorBuilder = pydantic_validator,
    ):
        if not isinstance(output, Mapping):
            raise ConfigError("validate.output must be a mapping of status to schemas")

        self.output = output
        self.rules = self.tokenize_rules(output, validator_builder)
        self.assert_no_overlapping_status_rules()

    @staticmethod
    def tokenize_rules(output, validator_builder) -> List[OutputValidationRule]:
        return [
            OutputValidationRule(status, spec, validator_builder)
            for status, spec in output.items()
        ]

    def assert_no_overlapping_status_rules(self):
        """Raise ConfigError if two rules could apply to the same status."""
        for i, rule in enumerate(self.rules):
            for other in self.rules[i + 1:]:
                if rule.overlaps(other):
                    raise ConfigError(
                        f"Output validation rules may not overlap: {rule} <=> {other}"
                    )

    def match(self, status: int) -> Optional[OutputValidationRule]:
        for rule in self.rules:
            if rule.matches(status):
                return rule
        return None

    async def validate(self, ctx) -> Optional[Any]:
        """Apply the rule matching ctx.status, if any."""
        rule = self.match(ctx.status)
        if rule is None:
            return None

        logger.debug("Validating %s response against output rule %s", ctx.status, rule)
        return await rule.validate(ctx)
