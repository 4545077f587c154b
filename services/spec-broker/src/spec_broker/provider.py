"""
Provider descriptors, specification bindings and live provider instances.

A provider declares which Specifications it implements through bindings. Each
binding names the implementing method, a default rating, and optionally a
rating function of the call arguments. When work is dispatched, every live
provider rates the input and the highest rating wins.

Example:
    class PngFormat(ProviderBase):
        @implements("load_image_file", rating=lambda f: 100 if str(f).endswith(".png") else 0)
        def load_file(self, f):
            ...

    registry.provider(name="PNG Format", version="1.0.1")(PngFormat)
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field
from spec_contract import SpecificationCatalog
from spec_contract.errors import ArgumentTypeError, InvalidSpecificationError

from spec_broker.errors import ProviderExecutionError
from spec_broker.versioning import VersionRequirement, compare_versions, satisfies

if TYPE_CHECKING:
    from spec_broker.config import RegistrySettings

logger = logging.getLogger(__name__)

DEFAULT_RATING = 50

# Attribute set on methods by @implements
BINDINGS_ATTR = "__spec_bindings__"

RatingFn = Callable[..., int]


class ProviderMetadata(BaseModel):
    """Static identity of a provider type."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    author: str | None = None
    license: str | None = None
    description: str | None = None
    help: str | None = None

    @property
    def canonical_name(self) -> str:
        return f"{self.name}-{self.version}"


@dataclass(frozen=True)
class ProviderBinding:
    """Association of a provider method with a Specification."""

    method: str
    default_rating: int = DEFAULT_RATING
    rating_fn: RatingFn | None = None


@dataclass(frozen=True)
class ApiDoc:
    """Documentation for a method a provider publishes as API."""

    arguments: tuple[str, ...]
    returns: str
    description: str

    def __str__(self) -> str:
        return f"({', '.join(self.arguments)}) -> {self.returns} '{self.description}'"


API_UNDOCUMENTED = ApiDoc(arguments=(), returns="", description="Not documented")


@dataclass(frozen=True)
class Outcome:
    """
    Result of invoking a provider.

    A provider that raises yields a failed Outcome: `value` is None and
    `error` holds the exception. Callers check `ok` or call `unwrap()`.
    """

    value: Any = None
    error: Exception | None = None
    provider: str | None = None
    spec_name: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise ProviderExecutionError(
                self.provider or "?", self.spec_name or "?", str(self.error)
            ) from self.error
        return self.value


def implements(
    spec_name: str,
    default_rating: int = DEFAULT_RATING,
    rating: RatingFn | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Mark a method as the implementation of a Specification.

    `rating` is called with the prospective call arguments and returns the
    provider's confidence (0-100) that it can handle them.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        declared = list(getattr(fn, BINDINGS_ATTR, ()))
        declared.append((str(spec_name), default_rating, rating))
        setattr(fn, BINDINGS_ATTR, declared)
        return fn

    return decorator


@dataclass(eq=False)
class ProviderDescriptor:
    """
    Everything the registry knows about one provider type before it is loaded.

    `factory` is called with no arguments to create the implementation object,
    usually the provider class itself.
    """

    metadata: ProviderMetadata
    factory: Callable[[], Any]
    dependencies: list[VersionRequirement] = field(default_factory=list)
    bindings: dict[str, ProviderBinding] = field(default_factory=dict)
    api_docs: dict[str, ApiDoc] = field(default_factory=dict)

    @classmethod
    def declare(
        cls,
        factory: Callable[[], Any],
        *,
        name: str,
        version: str,
        author: str | None = None,
        license: str | None = None,
        description: str | None = None,
        help: str | None = None,
        dependencies: Iterable[Any] = (),
    ) -> ProviderDescriptor:
        """
        Build a descriptor, collecting @implements bindings from the factory.

        Each entry of `dependencies` is a VersionRequirement, a provider name,
        or a (name, op, version) / (name, version) tuple.
        """
        descriptor = cls(
            metadata=ProviderMetadata(
                name=name,
                version=str(version),
                author=author,
                license=license,
                description=description,
                help=help,
            ),
            factory=factory,
        )
        for dep in dependencies:
            if isinstance(dep, VersionRequirement):
                descriptor.dependencies.append(dep)
            elif isinstance(dep, (tuple, list)):
                descriptor.depends_on(*dep)
            else:
                descriptor.depends_on(dep)
        if inspect.isclass(factory):
            descriptor._collect_bindings(factory)
        return descriptor

    def _collect_bindings(self, cls: type) -> None:
        # Walk base classes first so subclasses override inherited bindings
        for klass in reversed(cls.__mro__):
            for attr_name, member in vars(klass).items():
                for spec_name, default_rating, rating_fn in getattr(member, BINDINGS_ATTR, ()):
                    self.bind(spec_name, attr_name, default_rating, rating_fn)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    @property
    def canonical_name(self) -> str:
        return self.metadata.canonical_name

    def bind(
        self,
        spec_name: str,
        method: str | Callable[..., Any],
        default_rating: int = DEFAULT_RATING,
        rating_fn: RatingFn | None = None,
    ) -> ProviderBinding:
        """Bind a method to a Specification, replacing any earlier binding for it."""
        method_name = method if isinstance(method, str) else method.__name__
        binding = ProviderBinding(
            method=method_name,
            default_rating=int(default_rating),
            rating_fn=rating_fn,
        )
        self.bindings[str(spec_name)] = binding
        return binding

    def binding(self, spec_name: str) -> ProviderBinding | None:
        return self.bindings.get(str(spec_name))

    def depends_on(
        self,
        target_name: str,
        op: Any = None,
        version: Any = None,
    ) -> VersionRequirement:
        requirement = VersionRequirement.declare(target_name, op, version)
        self.dependencies.append(requirement)
        return requirement

    def document(
        self,
        method: str | Callable[..., Any],
        arguments: Iterable[str],
        returns: str,
        description: str,
    ) -> ApiDoc:
        """Record API documentation for a method. Advisory only, nothing is validated."""
        method_name = method if isinstance(method, str) else method.__name__
        doc = ApiDoc(arguments=tuple(arguments), returns=returns, description=description)
        self.api_docs[method_name] = doc
        return doc

    def meets(self, op: str | None, target_name: str, target_version: str | None) -> bool:
        """
        Return True if this provider satisfies a dependency declaration.

        Subclasses may override this to let a replacement provider stand in
        for an obsolete one.
        """
        if self.name != target_name:
            return False
        if op is None:
            return True
        if target_version is None:
            return False
        return satisfies(compare_versions(self.version, target_version), op)

    def __repr__(self) -> str:
        return f"ProviderDescriptor({self.canonical_name!r})"


class ProviderBase:
    """Optional base class for provider implementations; lifecycle hooks are no-ops."""

    def on_application_startup(self, app: Any) -> None:
        pass

    def on_object_loaded(self, app: Any, obj: Any) -> None:
        pass

    def on_application_shutdown(self, app: Any) -> None:
        pass


class ProviderInstance:
    """
    A loaded provider: the implementation object plus its descriptor.

    Rating never raises for provider-internal failures; a misbehaving rating
    function rates 0. Invocation failures come back as a failed Outcome.
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        implementation: Any,
        catalog: SpecificationCatalog,
        settings: RegistrySettings,
    ) -> None:
        self._descriptor = descriptor
        self._implementation = implementation
        self._catalog = catalog
        self._settings = settings

    # ------------------------------------------------------------------
    # Metadata

    @property
    def descriptor(self) -> ProviderDescriptor:
        return self._descriptor

    @property
    def implementation(self) -> Any:
        return self._implementation

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def version(self) -> str:
        return self._descriptor.version

    @property
    def canonical_name(self) -> str:
        return self._descriptor.canonical_name

    @property
    def author(self) -> str | None:
        return self._descriptor.metadata.author

    @property
    def license(self) -> str | None:
        return self._descriptor.metadata.license

    @property
    def description(self) -> str | None:
        return self._descriptor.metadata.description

    @property
    def help(self) -> str | None:
        return self._descriptor.metadata.help

    @property
    def bindings(self) -> dict[str, ProviderBinding]:
        return dict(self._descriptor.bindings)

    @property
    def settings(self) -> RegistrySettings:
        return self._settings

    @settings.setter
    def settings(self, settings: RegistrySettings) -> None:
        self._settings = settings

    # ------------------------------------------------------------------
    # Specifications

    def supports(self, spec_name: str) -> int | None:
        """Return the default rating if this provider implements spec_name, else None."""
        binding = self._descriptor.binding(spec_name)
        return binding.default_rating if binding else None

    def rate(self, spec_name: str, *args: Any) -> int:
        """
        Rate this provider's fitness for spec_name on the given arguments.

        Raises InvalidSpecificationError for an unknown specification. Returns
        0 when there is no binding or the arguments do not fit the contract;
        otherwise the rating function's result, or the default rating when
        there is no rating function or no arguments.
        """
        spec = self._catalog.require(spec_name)

        binding = self._descriptor.binding(spec.name)
        if binding is None:
            return 0

        if not spec.validate_input(*args):
            return 0

        if binding.rating_fn is None or not args:
            return binding.default_rating

        try:
            rating = binding.rating_fn(*args)
        except Exception as e:
            self._log_failure("rating", spec.name, e)
            return 0

        if isinstance(rating, bool) or not isinstance(rating, int):
            logger.warning(
                f"Rating {spec.name} for {self.canonical_name} returned "
                f"{type(rating).__name__}, treating as 0"
            )
            return 0
        return int(rating)

    def invoke(self, spec_name: str, *args: Any) -> Outcome:
        """
        Invoke the method bound to spec_name.

        Raises InvalidSpecificationError if the specification or binding is
        missing and ArgumentTypeError if the arguments do not fit. Exceptions
        raised by the provider are captured in the returned Outcome.
        """
        spec = self._catalog.require(spec_name)

        binding = self._descriptor.binding(spec.name)
        if binding is None:
            raise InvalidSpecificationError(spec.name, self.canonical_name)

        spec.validate_input_strict(*args)

        try:
            method = getattr(self._implementation, binding.method)
            value = method(*args)
        except Exception as e:
            self._log_failure("invoking", spec.name, e)
            return Outcome(error=e, provider=self.canonical_name, spec_name=spec.name)

        if not spec.validate_output(value):
            if self._settings.strict_output:
                raise ArgumentTypeError(spec.name, (value,))
            logger.warning(
                f"{self.canonical_name} {spec.name} expected: {spec.output} "
                f"got: {type(value).__name__}"
            )

        return Outcome(value=value, provider=self.canonical_name, spec_name=spec.name)

    def _log_failure(self, action: str, spec_name: str, error: Exception) -> None:
        logger.warning(
            f"Error {action} {spec_name} for {self.canonical_name}: {error}",
            exc_info=error if self._settings.debug else None,
        )

    # ------------------------------------------------------------------
    # API

    def api(self, strip_undocumented: bool = False) -> dict[str, ApiDoc]:
        """
        Map every public method of the implementation to its ApiDoc.

        Undocumented methods map to API_UNDOCUMENTED unless strip_undocumented
        is set, in which case they are left out.
        """
        docs = self._descriptor.api_docs
        result: dict[str, ApiDoc] = {}
        for name, _ in inspect.getmembers(type(self._implementation), inspect.isroutine):
            if name.startswith("_"):
                continue
            doc = docs.get(name)
            if doc is not None:
                result[name] = doc
            elif not strip_undocumented:
                result[name] = API_UNDOCUMENTED
        return result

    # ------------------------------------------------------------------
    # Application notifications

    def on_application_startup(self, app: Any) -> None:
        self._call_hook("on_application_startup", app)

    def on_object_loaded(self, app: Any, obj: Any) -> None:
        self._call_hook("on_object_loaded", app, obj)

    def on_application_shutdown(self, app: Any) -> None:
        self._call_hook("on_application_shutdown", app)

    def _call_hook(self, hook: str, *args: Any) -> None:
        fn = getattr(self._implementation, hook, None)
        if callable(fn):
            fn(*args)

    def __repr__(self) -> str:
        return f"<ProviderInstance {self.canonical_name}>"
