"""
Exception types for Spec-Broker.

Contract errors are re-exported from spec_contract so callers can import the
whole taxonomy from one place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from spec_contract.errors import (
    ArgumentTypeError,
    InvalidConstraint,
    InvalidSpecificationError,
    SpecContractError,
)

if TYPE_CHECKING:
    from spec_broker.versioning import VersionRequirement


class SpecBrokerError(SpecContractError):
    """Base exception for registry and provider errors."""


class InvalidDependencyOpError(SpecBrokerError):
    """Raised when a dependency operator is not one of <, <=, =, >=, >."""

    def __init__(self, op: Any):
        super().__init__(f"Invalid dependency operator: {op!r}")
        self.op = op


class BlacklistedProviderError(SpecBrokerError):
    """Raised when a blacklisted provider is loaded."""

    def __init__(self, provider: str):
        super().__init__(f"Provider is blacklisted: {provider}")
        self.provider = provider


class UnmetDependencyError(SpecBrokerError):
    """Raised when a provider's dependencies cannot be resolved or loaded."""

    def __init__(self, provider: str, unmet: list[VersionRequirement]):
        super().__init__(
            f"Unresolved dependencies for {provider}",
            {"unmet": [str(r) for r in unmet]},
        )
        self.provider = provider
        self.unmet = unmet


class ProviderLoadError(SpecBrokerError):
    """Raised when a provider could not be instantiated."""

    def __init__(self, provider: str, reason: str):
        super().__init__(f"Unable to load provider {provider}: {reason}")
        self.provider = provider
        self.reason = reason


class ProviderExecutionError(SpecBrokerError):
    """Raised when the result of a failed invocation is unwrapped."""

    def __init__(self, provider: str, spec_name: str, reason: str):
        super().__init__(
            f"Provider '{provider}' failed executing '{spec_name}': {reason}"
        )
        self.provider = provider
        self.spec_name = spec_name
        self.reason = reason


class NoProviderError(SpecBrokerError):
    """Raised when no live provider rates above zero for a dispatch."""

    def __init__(self, spec_name: str):
        super().__init__(f"No provider available for specification '{spec_name}'")
        self.spec_name = spec_name


__all__ = [
    "ArgumentTypeError",
    "BlacklistedProviderError",
    "InvalidConstraint",
    "InvalidDependencyOpError",
    "InvalidSpecificationError",
    "NoProviderError",
    "ProviderExecutionError",
    "ProviderLoadError",
    "SpecBrokerError",
    "SpecContractError",
    "UnmetDependencyError",
]
