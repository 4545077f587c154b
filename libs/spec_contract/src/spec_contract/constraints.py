"""
Type constraints for Specification arguments and results.

A constraint is one type, any of a set of types, or ANY. Matching uses
isinstance(), so abstract base classes such as io.IOBase can stand in for
every concrete stream type.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Final

from spec_contract.errors import InvalidConstraint

NoneType = type(None)


class _AnyType:
    """Sentinel for "any type at all"."""

    _instance: _AnyType | None = None

    def __new__(cls) -> _AnyType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ANY"


ANY: Final = _AnyType()


def _as_type(element: Any) -> type:
    # None is shorthand for NoneType, used for optional arguments and results
    if element is None:
        return NoneType
    if isinstance(element, type):
        return element
    raise InvalidConstraint(element)


@dataclass(frozen=True)
class TypeConstraint:
    """Constraint satisfied by instances of any of `types`, or by anything if `is_any`."""

    types: tuple[type, ...] = ()
    is_any: bool = False

    def __post_init__(self) -> None:
        if self.is_any:
            object.__setattr__(self, "types", ())
            return
        if not self.types:
            raise InvalidConstraint(self.types)
        unique = tuple(dict.fromkeys(_as_type(t) for t in self.types))
        object.__setattr__(self, "types", unique)

    @classmethod
    def any(cls) -> TypeConstraint:
        return cls(is_any=True)

    @classmethod
    def of(cls, value: Any) -> TypeConstraint:
        """
        Coerce a declaration into a TypeConstraint.

        Accepts a type, None, a list/tuple/set of those, ANY, or an existing
        TypeConstraint. Anything else raises InvalidConstraint.
        """
        if isinstance(value, TypeConstraint):
            return value
        if value is ANY:
            return cls.any()
        if value is None or isinstance(value, type):
            return cls(types=(_as_type(value),))
        if isinstance(value, (list, tuple, set, frozenset)):
            return cls(types=tuple(value))
        raise InvalidConstraint(value)

    def matches(self, value: Any) -> bool:
        """Return True if value satisfies this constraint."""
        return self.is_any or isinstance(value, self.types)

    def __str__(self) -> str:
        if self.is_any:
            return "*"
        return "|".join(t.__name__ for t in self.types)


def constraints_of(values: Iterable[Any]) -> tuple[TypeConstraint, ...]:
    """Coerce an ordered list of declarations, one per positional argument."""
    return tuple(TypeConstraint.of(v) for v in values)
