"""Shared fixtures for Spec-Broker tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from spec_broker import (
    Notification,
    ProviderDescriptor,
    ProviderInstance,
    Registry,
    RegistrySettings,
)


@pytest.fixture
def settings() -> RegistrySettings:
    return RegistrySettings()


@pytest.fixture
def registry(settings: RegistrySettings) -> Registry:
    """Registry with a two-argument integer specification defined."""
    registry = Registry(settings)
    registry.specifications.define(
        "binary_operation",
        "result op(a, b)",
        inputs=[int, int],
        output=int,
    )
    return registry


@pytest.fixture
def events(registry: Registry) -> list[tuple[Notification, str]]:
    """Notifications received by a subscriber, as (event, canonical name)."""
    received: list[tuple[Notification, str]] = []

    def record(notification: Notification, instance: ProviderInstance) -> None:
        received.append((notification, instance.canonical_name))

    registry.subscribe("recorder", record)
    return received


@pytest.fixture
def declare(registry: Registry) -> Callable[..., ProviderDescriptor]:
    """Declare and register a provider with no implementation of its own."""

    def _declare(
        name: str,
        version: str = "1.0",
        factory: Callable[[], Any] = object,
        dependencies: tuple[Any, ...] = (),
    ) -> ProviderDescriptor:
        descriptor = ProviderDescriptor.declare(
            factory, name=name, version=version, dependencies=dependencies
        )
        return registry.register_descriptor(descriptor)

    return _declare
