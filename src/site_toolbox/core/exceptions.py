"""Exception hierarchy for the site-toolbox framework."""

from __future__ import annotations

from collections.abc import Sequence


class ToolboxError(Exception):
    """Base exception for all site-toolbox errors."""


class ToolError(ToolboxError):
    """Raised when a tool encounters an error during execution."""


class ValidationError(ToolboxError):
    """Raised when parameter validation fails."""


class InvalidOptionError(ValidationError):
    """Raised by the options healer for unknown or non-positive options."""


class InvalidDimensionError(ValidationError):
    """Raised when the fixed sizing dimension of a plan is missing or below 1."""


class InvalidBreakpointError(ValidationError):
    """Raised when a ``src_set_breakpoints`` entry is not a positive number."""


class ResourceValidationError(ValidationError):
    """Raised when a resource descriptor does not match its schema.

    Every violation is collected, not just the first one.

    Args:
        resource: Human-readable resource type (e.g. ``"directory"``).
        violations: One message per failed constraint.
    """

    def __init__(self, resource: str, violations: Sequence[str]) -> None:
        self.resource = resource
        self.violations = tuple(violations)
        super().__init__(f"Invalid {resource} resource: " + "; ".join(self.violations))
