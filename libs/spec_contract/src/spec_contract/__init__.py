"""
Shared contract definitions for Spec-Broker.

Type constraints, specifications and the errors raised when a contract is
violated.
"""

from __future__ import annotations

from .constraints import ANY, NoneType, TypeConstraint, constraints_of
from .errors import (
    ArgumentTypeError,
    InvalidConstraint,
    InvalidSpecificationError,
    SpecContractError,
)
from .specification import Specification, SpecificationCatalog

__version__ = "0.1.0"

__all__ = [
    "ANY",
    "ArgumentTypeError",
    "InvalidConstraint",
    "InvalidSpecificationError",
    "NoneType",
    "SpecContractError",
    "Specification",
    "SpecificationCatalog",
    "TypeConstraint",
    "constraints_of",
]
