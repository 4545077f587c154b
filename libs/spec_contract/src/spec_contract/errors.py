"""
Exception types for Spec-Contract.

Every error raised by the contract model derives from SpecContractError so
callers can catch contract violations with a single handler.
"""

from __future__ import annotations

from typing import Any


class SpecContractError(Exception):
    """Base exception for all contract errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class InvalidConstraint(SpecContractError):
    """Raised when a type constraint contains something that is not a type."""

    def __init__(self, offending: Any):
        super().__init__(f"Invalid type constraint element: {offending!r}")
        self.offending = offending


class ArgumentTypeError(SpecContractError):
    """Raised when arguments or a result do not satisfy a Specification."""

    def __init__(self, spec_name: str, arguments: tuple[Any, ...]):
        super().__init__(
            f"Arguments do not match specification '{spec_name}': {arguments!r}"
        )
        self.spec_name = spec_name
        self.arguments = arguments


class InvalidSpecificationError(SpecContractError):
    """Raised when a Specification is unknown, or a provider has no binding for it."""

    def __init__(self, spec_name: str, provider: str | None = None):
        if provider:
            message = f"Provider '{provider}' does not implement specification '{spec_name}'"
        else:
            message = f"Specification not found: {spec_name}"
        super().__init__(message)
        self.spec_name = spec_name
        self.provider = provider
