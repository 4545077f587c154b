"""
Version comparison and dependency requirements for providers.

Version strings are tokenized by splitting on '.', then splitting the last
segment on '-', so "1.2.3-beta" becomes ["1", "2", "3", "beta"]. Tokens are
compared pairwise from the left; the first position that differs decides.
"""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict

from spec_broker.errors import InvalidDependencyOpError

if TYPE_CHECKING:
    from spec_broker.provider import ProviderDescriptor

DependencyOp = Literal["<", "<=", "=", ">=", ">"]

VALID_DEPENDENCY_OPS: tuple[str, ...] = ("<", "<=", "=", ">=", ">")


class Ordering(IntEnum):
    """Result of comparing an existing version with a required version."""

    LESS = -1
    EQUAL = 0
    GREATER = 1


_OP_ACCEPTS: dict[str, frozenset[Ordering]] = {
    "<": frozenset({Ordering.LESS}),
    "<=": frozenset({Ordering.LESS, Ordering.EQUAL}),
    "=": frozenset({Ordering.EQUAL}),
    ">=": frozenset({Ordering.EQUAL, Ordering.GREATER}),
    ">": frozenset({Ordering.GREATER}),
}


def version_tokens(version: str) -> list[str]:
    """Split a version string into comparison tokens."""
    tokens = str(version).split(".")
    last = tokens.pop()
    tokens.extend(last.split("-"))
    return tokens


def _is_numeric(token: str) -> bool:
    # "01" is not numeric: only canonical decimal integers compare by value
    return token.isdecimal() and str(int(token)) == token


def _compare_tokens(mine: str, theirs: str) -> int:
    mine_numeric = _is_numeric(mine)
    theirs_numeric = _is_numeric(theirs)

    if mine_numeric and theirs_numeric:
        a, b = int(mine), int(theirs)
        return (a > b) - (a < b)
    if mine_numeric:
        return 1
    if theirs_numeric:
        return -1
    # Non-numeric tokens have no ordering, only equality
    return 0 if mine == theirs else -1


def compare_versions(existing: str, required: str) -> Ordering:
    """
    Compare an existing version against a required version.

    Rules, applied per token position:
    - existing has tokens left when required is exhausted: GREATER
    - both numeric: numeric comparison
    - only one numeric: the numeric token is greater
    - neither numeric: equal strings continue, unequal strings are LESS
    If existing runs out while required still has tokens, existing is LESS.
    """
    mine = version_tokens(existing)
    theirs = version_tokens(required)

    for idx, token in enumerate(mine):
        if idx >= len(theirs):
            return Ordering.GREATER
        diff = _compare_tokens(token, theirs[idx])
        if diff != 0:
            return Ordering(diff)

    if len(mine) < len(theirs):
        return Ordering.LESS
    return Ordering.EQUAL


def satisfies(ordering: Ordering, op: str) -> bool:
    """Return True if a comparison result satisfies a dependency operator."""
    try:
        return ordering in _OP_ACCEPTS[op]
    except KeyError:
        raise InvalidDependencyOpError(op) from None


class VersionRequirement(BaseModel):
    """
    A dependency on another provider.

    `op` and `version` are both None for a requirement that accepts any
    version of the named provider.
    """

    model_config = ConfigDict(frozen=True)

    target_name: str
    op: DependencyOp | None = None
    version: str | None = None

    @classmethod
    def declare(
        cls,
        target_name: str,
        op: Any = None,
        version: Any = None,
    ) -> VersionRequirement:
        """
        Build a requirement from the declaration forms providers use.

        Forms:
            declare("Codec")                  # any version
            declare("Codec", "1.0")           # same as ">=", "1.0"
            declare("Codec", "=", "1.0")
        """
        if version is None and op is not None:
            if str(op) in VALID_DEPENDENCY_OPS:
                # An operator with nothing to compare against
                raise InvalidDependencyOpError(op)
            op, version = ">=", op
        elif version is not None and op is None:
            op = ">="

        if op is not None and op not in VALID_DEPENDENCY_OPS:
            raise InvalidDependencyOpError(op)

        return cls(
            target_name=str(target_name),
            op=op,
            version=None if version is None else str(version),
        )

    def is_met_by(self, descriptor: ProviderDescriptor) -> bool:
        return descriptor.meets(self.op, self.target_name, self.version)

    def __str__(self) -> str:
        if self.op is None:
            return self.target_name
        return f"{self.target_name} {self.op} {self.version}"
