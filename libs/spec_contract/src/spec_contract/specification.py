"""
Specifications: named, typed contracts for units of work.

A Specification is defined by the host application and names a unit of work
that providers implement, e.g. `load_image_file`. Two specifications may share
input and output types and still describe unrelated work; identity is the
name alone.

Example:
    catalog = SpecificationCatalog()
    catalog.define(
        "load_image_file",
        "Image load_image_file(path|stream)",
        inputs=[[str, io.IOBase]],
        output=Image,
    )
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from spec_contract.constraints import NoneType, TypeConstraint, constraints_of
from spec_contract.errors import ArgumentTypeError, InvalidSpecificationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Specification:
    """
    An immutable contract: positional input constraints and an output constraint.

    `inputs` and `output` accept raw declarations (types, lists of types, ANY,
    None) and are coerced to TypeConstraint on construction, so a malformed
    declaration fails immediately with InvalidConstraint.
    """

    name: str
    prototype: str
    inputs: tuple[TypeConstraint, ...] = ()
    output: TypeConstraint = field(default_factory=lambda: TypeConstraint.of(NoneType))

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", str(self.name))
        object.__setattr__(self, "prototype", str(self.prototype))
        object.__setattr__(self, "inputs", constraints_of(self.inputs))
        object.__setattr__(self, "output", TypeConstraint.of(self.output))

    def validate_input(self, *args: Any) -> bool:
        """
        Check that every declared argument is present and of the right type.

        Arguments beyond the declared inputs are not checked, which allows
        optional or variadic tails.
        """
        if len(args) < len(self.inputs):
            return False
        return all(c.matches(arg) for c, arg in zip(self.inputs, args))

    def validate_input_strict(self, *args: Any) -> bool:
        if not self.validate_input(*args):
            raise ArgumentTypeError(self.name, args)
        return True

    def validate_output(self, value: Any) -> bool:
        return self.output.matches(value)

    def validate_output_strict(self, value: Any) -> bool:
        if not self.validate_output(value):
            raise ArgumentTypeError(self.name, (value,))
        return True

    def __str__(self) -> str:
        args = ", ".join(str(c) for c in self.inputs)
        return f"{self.name}({args}) -> {self.output}"


class SpecificationCatalog:
    """
    Mapping of specification name to Specification.

    Registration is last-write-wins: registering a second specification under
    an existing name replaces the first, so contracts can be reloaded.
    """

    def __init__(self, specifications: Iterable[Specification] = ()) -> None:
        self._specs: dict[str, Specification] = {}
        for spec in specifications:
            self.register(spec)

    def register(self, spec: Specification) -> Specification:
        if spec.name in self._specs:
            logger.debug(f"Replacing specification '{spec.name}'")
        self._specs[spec.name] = spec
        return spec

    def define(
        self,
        name: str,
        prototype: str,
        inputs: Iterable[Any] = (),
        output: Any = None,
    ) -> Specification:
        """Construct a Specification and register it."""
        return self.register(
            Specification(
                name=name,
                prototype=prototype,
                inputs=tuple(inputs),
                output=output,
            )
        )

    def lookup(self, name: str) -> Specification | None:
        return self._specs.get(str(name))

    def require(self, name: str) -> Specification:
        """Return the named Specification or raise InvalidSpecificationError."""
        spec = self.lookup(name)
        if spec is None:
            raise InvalidSpecificationError(str(name))
        return spec

    def all(self) -> dict[str, Specification]:
        return dict(self._specs)

    def __contains__(self, name: object) -> bool:
        return str(name) in self._specs

    def __len__(self) -> int:
        return len(self._specs)
