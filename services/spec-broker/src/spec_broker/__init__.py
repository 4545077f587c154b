"""
Spec-Broker: Capability-Matched Provider Dispatch

Providers declare typed implementations of specifications along with a
confidence rating; the registry dispatches each unit of work to the
best-rated provider.
"""

from spec_broker.config import BlacklistConfig, RegistrySettings, load_blacklist_file
from spec_broker.discovery import ProviderLoader
from spec_broker.errors import (
    ArgumentTypeError,
    BlacklistedProviderError,
    InvalidConstraint,
    InvalidDependencyOpError,
    InvalidSpecificationError,
    NoProviderError,
    ProviderExecutionError,
    ProviderLoadError,
    SpecBrokerError,
    UnmetDependencyError,
)
from spec_broker.provider import (
    API_UNDOCUMENTED,
    DEFAULT_RATING,
    ApiDoc,
    Outcome,
    ProviderBase,
    ProviderBinding,
    ProviderDescriptor,
    ProviderInstance,
    ProviderMetadata,
    implements,
)
from spec_broker.registry import (
    DependencyReport,
    LoadResult,
    LoadStatus,
    Notification,
    Registry,
)
from spec_broker.versioning import (
    Ordering,
    VersionRequirement,
    compare_versions,
    version_tokens,
)

__all__ = [
    "API_UNDOCUMENTED",
    "DEFAULT_RATING",
    "ApiDoc",
    "ArgumentTypeError",
    "BlacklistConfig",
    "BlacklistedProviderError",
    "DependencyReport",
    "InvalidConstraint",
    "InvalidDependencyOpError",
    "InvalidSpecificationError",
    "LoadResult",
    "LoadStatus",
    "NoProviderError",
    "Notification",
    "Ordering",
    "Outcome",
    "ProviderBase",
    "ProviderBinding",
    "ProviderDescriptor",
    "ProviderExecutionError",
    "ProviderInstance",
    "ProviderLoadError",
    "ProviderLoader",
    "ProviderMetadata",
    "Registry",
    "RegistrySettings",
    "SpecBrokerError",
    "UnmetDependencyError",
    "VersionRequirement",
    "compare_versions",
    "implements",
    "load_blacklist_file",
    "version_tokens",
]

__version__ = "0.1.0"
