"""
Provider Registry for Spec-Broker.

The registry owns every piece of provider state for one host application:
1. Declared provider descriptors, in declaration order
2. Live provider instances, keyed by canonical name
3. Blacklists, search roots and notification subscribers
4. The specification catalog the providers implement

Lifecycle per descriptor:
    Unloaded -> Loading -> Loaded
    Unloaded -> Rejected (blacklisted, unmet or failed dependency, cycle)
    Loaded   -> Unloaded (explicit unload)

The registry is not thread-safe. Hosts that load, unload or dispatch from
several threads must serialise those calls themselves.

Example:
    registry = Registry.from_settings()
    registry.add_base_dir("my_app/plugins")
    registry.app_init_and_startup(app)

    loader = registry.fittest("load_image_file", path)
    if loader:
        image = loader.invoke("load_image_file", path).unwrap()
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from spec_contract import Specification, SpecificationCatalog

from spec_broker.config import RegistrySettings, load_blacklist_file
from spec_broker.discovery import ProviderLoader
from spec_broker.errors import (
    BlacklistedProviderError,
    NoProviderError,
    ProviderLoadError,
    UnmetDependencyError,
)
from spec_broker.provider import Outcome, ProviderDescriptor, ProviderInstance
from spec_broker.versioning import Ordering, VersionRequirement, compare_versions

logger = logging.getLogger(__name__)


class Notification(str, Enum):
    """Events sent to registry subscribers."""

    LOAD = "load"
    UNLOAD = "unload"


Subscriber = Callable[[Notification, ProviderInstance], None]


class LoadStatus(str, Enum):
    """Outcome of a load attempt."""

    LOADED = "loaded"
    ALREADY_LOADED = "already_loaded"
    BLACKLISTED = "blacklisted"
    UNMET_DEPENDENCY = "unmet_dependency"
    DEPENDENCY_FAILED = "dependency_failed"
    CYCLIC_DEPENDENCY = "cyclic_dependency"
    FAILED = "failed"


_REJECTED = frozenset(
    {
        LoadStatus.BLACKLISTED,
        LoadStatus.UNMET_DEPENDENCY,
        LoadStatus.DEPENDENCY_FAILED,
        LoadStatus.CYCLIC_DEPENDENCY,
    }
)


@dataclass
class LoadResult:
    """
    Result of Registry.load().

    `rejected` means policy refused the provider (blacklist or dependencies);
    `failed` means its factory raised.
    """

    descriptor: ProviderDescriptor
    status: LoadStatus
    instance: ProviderInstance | None = None
    unmet: list[VersionRequirement] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status in (LoadStatus.LOADED, LoadStatus.ALREADY_LOADED)

    @property
    def rejected(self) -> bool:
        return self.status in _REJECTED

    @property
    def failed(self) -> bool:
        return self.status is LoadStatus.FAILED

    def raise_for_status(self) -> ProviderInstance:
        """Return the instance, or raise the error matching the status."""
        name = self.descriptor.canonical_name
        if self.status is LoadStatus.BLACKLISTED:
            raise BlacklistedProviderError(name)
        if self.rejected:
            raise UnmetDependencyError(name, self.unmet)
        if self.failed:
            raise ProviderLoadError(name, str(self.error)) from self.error
        if self.instance is None:
            raise ProviderLoadError(name, f"no instance for status {self.status.value}")
        return self.instance


@dataclass
class DependencyReport:
    """Providers chosen to fill each requirement, and requirements nobody meets."""

    met: list[ProviderDescriptor] = field(default_factory=list)
    unmet: list[VersionRequirement] = field(default_factory=list)

    @property
    def satisfied(self) -> bool:
        return not self.unmet


class Registry:
    """Catalog of provider descriptors, live providers and specifications."""

    def __init__(
        self,
        settings: RegistrySettings | None = None,
        specifications: SpecificationCatalog | None = None,
    ) -> None:
        self._settings = settings if settings is not None else RegistrySettings()
        # An empty catalog is falsy; keep the caller's object so it can be filled later
        self._specifications = (
            specifications if specifications is not None else SpecificationCatalog()
        )
        self._descriptors: list[ProviderDescriptor] = []
        self._instances: dict[str, ProviderInstance] = {}
        self._subscribers: dict[Hashable, Subscriber] = {}
        self._blacklist: set[str] = set()
        self._blacklist_paths: list[str] = []
        self._base_dirs: list[str] = []
        self._plugin_dirs: list[str] = []
        # Canonical names currently in the Loading state
        self._loading: set[str] = set()
        self._loader = ProviderLoader(self)

    @classmethod
    def from_settings(cls, settings: RegistrySettings | None = None) -> Registry:
        """Create a registry with search roots and blacklists applied from settings."""
        settings = settings or RegistrySettings()
        registry = cls(settings)
        registry.add_base_dir(*settings.base_dirs)
        registry.add_plugin_dir(*settings.plugin_dirs)
        registry.blacklist(*settings.blacklist)
        registry.blacklist_path(*settings.blacklist_paths)
        if settings.blacklist_file:
            config = load_blacklist_file(settings.blacklist_file)
            registry.blacklist(*config.providers)
            registry.blacklist_path(*config.paths)
        return registry

    @property
    def settings(self) -> RegistrySettings:
        return self._settings

    @settings.setter
    def settings(self, settings: RegistrySettings) -> None:
        """Replace the settings; live providers switch to them immediately."""
        self._settings = settings
        for instance in self._instances.values():
            instance.settings = settings

    # ========================================================================
    # Declaration
    # ========================================================================

    def register_descriptor(self, descriptor: ProviderDescriptor) -> ProviderDescriptor:
        """
        Make a provider type known to the registry.

        A descriptor with the same canonical name as a known one replaces it
        in place, so re-reading a provider module does not duplicate it.
        """
        for idx, known in enumerate(self._descriptors):
            if known is descriptor:
                return descriptor
            if known.canonical_name == descriptor.canonical_name:
                logger.debug(f"Replacing descriptor {descriptor.canonical_name}")
                self._descriptors[idx] = descriptor
                return descriptor
        self._descriptors.append(descriptor)
        return descriptor

    def provider(
        self,
        *,
        name: str,
        version: str,
        author: str | None = None,
        license: str | None = None,
        description: str | None = None,
        help: str | None = None,
        dependencies: Iterable[Any] = (),
    ) -> Callable[[type], type]:
        """Class decorator declaring and registering a provider type."""

        def decorator(cls: type) -> type:
            descriptor = ProviderDescriptor.declare(
                cls,
                name=name,
                version=version,
                author=author,
                license=license,
                description=description,
                help=help,
                dependencies=dependencies,
            )
            self.register_descriptor(descriptor)
            return cls

        return decorator

    def descriptor_for(self, factory: Any) -> ProviderDescriptor | None:
        """Return the known descriptor whose factory is `factory`."""
        for descriptor in self._descriptors:
            if descriptor.factory is factory:
                return descriptor
        return None

    # ========================================================================
    # Specifications
    # ========================================================================

    @property
    def specifications(self) -> SpecificationCatalog:
        return self._specifications

    def specification(self, name: str) -> Specification | None:
        return self._specifications.lookup(name)

    # ========================================================================
    # Administration
    # ========================================================================

    def clear(self) -> None:
        """Unload all providers, keeping blacklists, search roots and subscribers."""
        self._instances.clear()

    def purge(self) -> None:
        """Unload all providers and forget blacklists, search roots and subscribers."""
        self.clear()
        self._blacklist.clear()
        self._blacklist_paths.clear()
        self._base_dirs.clear()
        self._plugin_dirs.clear()
        self._subscribers.clear()

    def add_base_dir(self, *paths: str) -> None:
        """Add directories searched relative to every sys.path entry."""
        self._base_dirs.extend(str(p) for p in paths)

    def add_plugin_dir(self, *paths: str) -> None:
        """Add directories searched as given."""
        self._plugin_dirs.extend(str(p) for p in paths)

    def blacklist(self, *canonical_names: str) -> None:
        """Prevent providers from loading, by exact canonical name (name-version)."""
        self._blacklist.update(canonical_names)

    def blacklist_path(self, *suffixes: str) -> None:
        """Prevent provider modules whose path ends with a suffix from being read."""
        self._blacklist_paths.extend(str(s) for s in suffixes)

    def is_blacklisted(self, canonical_name: str) -> bool:
        return canonical_name in self._blacklist

    def is_path_blacklisted(self, path: str | Path) -> bool:
        path = str(path)
        return any(path.endswith(suffix) for suffix in self._blacklist_paths)

    @property
    def base_dirs(self) -> list[str]:
        return list(self._base_dirs)

    @property
    def absolute_dirs(self) -> list[str]:
        return list(self._plugin_dirs)

    @property
    def blacklisted(self) -> set[str]:
        return set(self._blacklist)

    # ========================================================================
    # Subscribers
    # ========================================================================

    def subscribe(self, subscriber_id: Hashable, callback: Subscriber) -> None:
        """Register callback(notification, instance) under subscriber_id."""
        self._subscribers[subscriber_id] = callback

    def unsubscribe(self, subscriber_id: Hashable) -> None:
        self._subscribers.pop(subscriber_id, None)

    def _notify(self, notification: Notification, instance: ProviderInstance) -> None:
        for callback in list(self._subscribers.values()):
            callback(notification, instance)

    # ========================================================================
    # Dependencies
    # ========================================================================

    def check_dependencies(self, descriptor: ProviderDescriptor) -> DependencyReport:
        """Resolve each requirement of descriptor against all known descriptors."""
        report = DependencyReport()
        for requirement in descriptor.dependencies:
            candidates = [d for d in self._descriptors if requirement.is_met_by(d)]
            if not candidates:
                report.unmet.append(requirement)
                continue
            report.met.append(self._choose_dependency(candidates))
        return report

    def _choose_dependency(self, candidates: list[ProviderDescriptor]) -> ProviderDescriptor:
        if self.settings.dependency_strategy == "highest_version":
            best = candidates[0]
            for candidate in candidates[1:]:
                if compare_versions(candidate.version, best.version) >= Ordering.EQUAL:
                    best = candidate
            return best
        return candidates[-1]

    # ========================================================================
    # Load / Unload
    # ========================================================================

    def load(self, descriptor: ProviderDescriptor) -> LoadResult:
        """
        Instantiate a provider if it is not loaded, not blacklisted, and its
        dependencies resolve and load. Subscribers are notified on success.
        """
        name = descriptor.canonical_name

        existing = self._instances.get(name)
        if existing is not None:
            return LoadResult(descriptor, LoadStatus.ALREADY_LOADED, instance=existing)

        if name in self._blacklist:
            logger.info(f"Attempt to load blacklisted provider {name!r}")
            return LoadResult(descriptor, LoadStatus.BLACKLISTED)

        if name in self._loading:
            logger.warning(f"Cyclic dependency detected while loading {name!r}")
            return LoadResult(descriptor, LoadStatus.CYCLIC_DEPENDENCY)

        report = self.check_dependencies(descriptor)
        if not report.satisfied:
            unmet = ", ".join(str(r) for r in report.unmet)
            logger.info(f"Cannot load provider {name}: unresolved dependencies: {unmet}")
            return LoadResult(descriptor, LoadStatus.UNMET_DEPENDENCY, unmet=report.unmet)

        self._loading.add(name)
        try:
            # Dependencies load first, depth-first
            for requirement, dependency in zip(descriptor.dependencies, report.met):
                dep_result = self.load(dependency)
                if dep_result.ok:
                    continue
                logger.info(
                    f"Unable to load dependency {dependency.canonical_name!r} of {name!r}"
                )
                status = (
                    LoadStatus.CYCLIC_DEPENDENCY
                    if dep_result.status is LoadStatus.CYCLIC_DEPENDENCY
                    else LoadStatus.DEPENDENCY_FAILED
                )
                return LoadResult(descriptor, status, unmet=[requirement], error=dep_result.error)

            try:
                implementation = descriptor.factory()
            except Exception as e:
                logger.warning(
                    f"Unable to load provider {name!r}: {e}",
                    exc_info=e if self.settings.debug else None,
                )
                return LoadResult(descriptor, LoadStatus.FAILED, error=e)
        finally:
            self._loading.discard(name)

        instance = ProviderInstance(
            descriptor, implementation, self._specifications, self.settings
        )
        self._instances[name] = instance
        logger.info(f"Loaded provider {name}")
        self._notify(Notification.LOAD, instance)
        return LoadResult(descriptor, LoadStatus.LOADED, instance=instance)

    def unload(self, instance: ProviderInstance) -> None:
        """Remove a live provider and notify subscribers. No-op if it is not loaded."""
        removed = self._instances.pop(instance.canonical_name, None)
        if removed is None:
            return
        logger.info(f"Unloaded provider {removed.canonical_name}")
        self._notify(Notification.UNLOAD, removed)

    def load_all(self) -> dict[str, LoadResult]:
        """Attempt to load every known descriptor; failures do not stop the batch."""
        return {d.canonical_name: self.load(d) for d in list(self._descriptors)}

    # ========================================================================
    # Provider modules
    # ========================================================================

    def read_file(self, path: str | Path) -> bool:
        return self._loader.read_file(path)

    def read_dir(self, path: str | Path) -> None:
        self._loader.read_dir(path)

    def load_specification_dir(self, path: str | Path) -> None:
        """Read specification modules; they register exactly like provider modules."""
        self._loader.read_dir(path)

    def read_all(self) -> None:
        self._loader.read_all()

    def plugin_dirs(self, include_missing: bool = False) -> list[str]:
        return self._loader.plugin_dirs(include_missing)

    # ========================================================================
    # Application hooks
    # ========================================================================

    def app_init(self, app: Any = None) -> None:
        """Unload everything, read every provider directory, then load all providers."""
        self.clear()
        self.read_all()
        self.load_all()

    def app_startup(self, app: Any = None) -> None:
        for instance in list(self._instances.values()):
            instance.on_application_startup(app)

    def app_init_and_startup(self, app: Any = None) -> None:
        self.app_init(app)
        self.app_startup(app)

    def app_object_loaded(self, obj: Any, app: Any = None) -> None:
        """Tell every provider the application loaded a document or project."""
        for instance in list(self._instances.values()):
            instance.on_object_loaded(app, obj)

    def app_shutdown(self, app: Any = None) -> None:
        for instance in list(self._instances.values()):
            instance.on_application_shutdown(app)

    # ========================================================================
    # Listing
    # ========================================================================

    @property
    def providers(self) -> dict[str, ProviderInstance]:
        return dict(self._instances)

    @property
    def descriptors(self) -> list[ProviderDescriptor]:
        return list(self._descriptors)

    def find(self, pattern: str | re.Pattern[str]) -> ProviderInstance | None:
        """
        Return the first live provider, by sorted canonical name, whose
        canonical name starts with `pattern` or matches it as a regex.
        """
        for name in sorted(self._instances):
            if isinstance(pattern, re.Pattern):
                if pattern.search(name):
                    return self._instances[name]
            elif name.startswith(pattern):
                return self._instances[name]
        return None

    # ========================================================================
    # Fitness selection
    # ========================================================================

    def _rate_all(self, spec_name: str, args: tuple[Any, ...]) -> list[tuple[ProviderInstance, int]]:
        self._specifications.require(spec_name)

        rated: list[tuple[ProviderInstance, int]] = []
        for instance in list(self._instances.values()):
            if args:
                rating = instance.rate(spec_name, *args)
            else:
                rating = instance.supports(spec_name) or 0
            rated.append((instance, rating))

        # Stable: equal ratings keep load order
        rated.sort(key=lambda pair: pair[1], reverse=True)
        return [(instance, rating) for instance, rating in rated if rating > 0]

    def list_providing(self, spec_name: str, *args: Any) -> list[tuple[ProviderInstance, int]]:
        """
        List (provider, rating) for every live provider rating spec_name above 0,
        best first. Without args the default ratings are used.
        """
        return self._rate_all(spec_name, args)

    def fittest(
        self,
        spec_name: str,
        *args: Any,
        then: Callable[[ProviderInstance], Any] | None = None,
    ) -> ProviderInstance | None:
        """
        Return the highest-rated live provider for spec_name and args, or None.

        If `then` is given it is called with the selected provider.
        """
        rated = self._rate_all(spec_name, args)
        if not rated:
            logger.debug(f"No provider rated above 0 for {spec_name}")
            return None

        instance, rating = rated[0]
        logger.debug(f"Selected {instance.canonical_name} for {spec_name} (rating={rating})")
        if then is not None:
            then(instance)
        return instance

    def dispatch(self, spec_name: str, *args: Any) -> Outcome:
        """Invoke spec_name on the fittest provider for args."""
        instance = self.fittest(spec_name, *args)
        if instance is None:
            raise NoProviderError(spec_name)
        return instance.invoke(spec_name, *args)
