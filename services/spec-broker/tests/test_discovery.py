"""Tests for reading provider modules from disk."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from textwrap import dedent

import pytest

from spec_broker import Registry
from spec_broker.discovery import MODULE_PREFIX, module_name_for

PROVIDER_TEMPLATE = dedent(
    """
    from spec_broker import implements


    def register(registry):
        @registry.provider(name="{name}", version="1.0")
        class Provider:
            @implements("binary_operation")
            def run(self, a, b):
                return a + b
    """
)


def _write_provider(path: Path, name: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(PROVIDER_TEMPLATE.format(name=name))
    return path


def _names(registry: Registry) -> list[str]:
    return [d.name for d in registry.descriptors]


class TestReadFile:
    """Test importing a single provider module."""

    def test_register_hook_called(self, registry: Registry, tmp_path: Path) -> None:
        path = _write_provider(tmp_path / "adder.py", "Adder")
        assert registry.read_file(path) is True
        assert _names(registry) == ["Adder"]

    def test_module_without_hook(self, registry: Registry, tmp_path: Path) -> None:
        path = tmp_path / "helpers.py"
        path.write_text("VALUE = 1\n")
        assert registry.read_file(path) is True
        assert registry.descriptors == []

    def test_import_error_is_logged(
        self, registry: Registry, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        path = tmp_path / "broken.py"
        path.write_text("raise ImportError('missing codec')\n")
        with caplog.at_level(logging.WARNING):
            assert registry.read_file(path) is False
        assert "missing codec" in caplog.text

    def test_syntax_error_is_logged(self, registry: Registry, tmp_path: Path) -> None:
        path = tmp_path / "typo.py"
        path.write_text("def register(registry)\n")
        assert registry.read_file(path) is False

    def test_blacklisted_path(self, registry: Registry, tmp_path: Path) -> None:
        path = _write_provider(tmp_path / "formats" / "png.py", "Png")
        registry.blacklist_path(os.path.join("formats", "png.py"))
        assert registry.read_file(path) is False
        assert registry.descriptors == []

    def test_reread_replaces_descriptor(self, registry: Registry, tmp_path: Path) -> None:
        path = _write_provider(tmp_path / "adder.py", "Adder")
        registry.read_file(path)
        registry.read_file(path)
        assert _names(registry) == ["Adder"]

    def test_reread_replaces_module(self, registry: Registry, tmp_path: Path) -> None:
        """Repeated app_init keeps one sys.modules entry per provider file."""
        path = _write_provider(tmp_path / "adder.py", "Adder")
        registry.add_plugin_dir(str(tmp_path))
        name = module_name_for(path)
        try:
            registry.app_init()
            first = sys.modules[name]
            before = {m for m in sys.modules if m.startswith(MODULE_PREFIX)}
            for _ in range(4):
                registry.app_init()
            after = {m for m in sys.modules if m.startswith(MODULE_PREFIX)}
            assert after == before
            assert sys.modules[name] is not first
        finally:
            sys.modules.pop(name, None)

    def test_failed_read_leaves_no_module(self, registry: Registry, tmp_path: Path) -> None:
        path = tmp_path / "broken.py"
        path.write_text("raise RuntimeError('bad')\n")
        registry.read_file(path)
        assert module_name_for(path) not in sys.modules


class TestReadDir:
    """Test recursive directory scanning."""

    def test_recursive_sorted(self, registry: Registry, tmp_path: Path) -> None:
        _write_provider(tmp_path / "b.py", "B")
        _write_provider(tmp_path / "a" / "z.py", "AZ")
        _write_provider(tmp_path / "c.py", "C")
        registry.read_dir(tmp_path)
        assert _names(registry) == ["AZ", "B", "C"]

    def test_skips_shared_hidden_and_non_python(
        self, registry: Registry, tmp_path: Path
    ) -> None:
        _write_provider(tmp_path / "shared" / "util.py", "Shared")
        _write_provider(tmp_path / ".cache" / "old.py", "Hidden")
        _write_provider(tmp_path / ".hidden.py", "HiddenFile")
        (tmp_path / "README.txt").write_text("not a provider")
        _write_provider(tmp_path / "real.py", "Real")
        registry.read_dir(tmp_path)
        assert _names(registry) == ["Real"]

    def test_nested_shared_skipped(self, registry: Registry, tmp_path: Path) -> None:
        _write_provider(tmp_path / "formats" / "shared" / "codec.py", "Codec")
        _write_provider(tmp_path / "formats" / "png.py", "Png")
        registry.read_dir(tmp_path)
        assert _names(registry) == ["Png"]

    def test_one_bad_module_does_not_stop_scan(
        self, registry: Registry, tmp_path: Path
    ) -> None:
        (tmp_path / "a_broken.py").write_text("raise RuntimeError('bad')\n")
        _write_provider(tmp_path / "b_good.py", "Good")
        registry.read_dir(tmp_path)
        assert _names(registry) == ["Good"]


class TestPluginDirs:
    """Test search root computation."""

    def test_base_dirs_joined_to_sys_path(
        self, registry: Registry, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "app" / "plugins").mkdir(parents=True)
        monkeypatch.syspath_prepend(str(tmp_path))
        registry.add_base_dir(os.path.join("app", "plugins"))
        assert registry.plugin_dirs() == [str(tmp_path / "app" / "plugins")]

    def test_missing_dirs_filtered(self, registry: Registry, tmp_path: Path) -> None:
        missing = str(tmp_path / "nowhere")
        registry.add_plugin_dir(missing)
        assert registry.plugin_dirs() == []
        assert registry.plugin_dirs(include_missing=True)[-1] == missing

    def test_absolute_dirs_follow_base_dirs(
        self, registry: Registry, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "root" / "broker_test_plugins").mkdir(parents=True)
        (tmp_path / "extra").mkdir()
        monkeypatch.syspath_prepend(str(tmp_path / "root"))
        registry.add_plugin_dir(str(tmp_path / "extra"))
        registry.add_base_dir("broker_test_plugins")
        assert registry.plugin_dirs() == [
            str(tmp_path / "root" / "broker_test_plugins"),
            str(tmp_path / "extra"),
        ]

    def test_app_init_reads_and_loads(self, registry: Registry, tmp_path: Path) -> None:
        _write_provider(tmp_path / "adder.py", "Adder")
        registry.add_plugin_dir(str(tmp_path))
        registry.app_init()
        assert list(registry.providers) == ["Adder-1.0"]
        assert registry.dispatch("binary_operation", 1, 2).value == 3


class TestSpecificationDir:
    """Test loading specification modules."""

    def test_specifications_registered(self, registry: Registry, tmp_path: Path) -> None:
        (tmp_path / "imaging.py").write_text(
            dedent(
                """
                def register(registry):
                    registry.specifications.define(
                        "scale", "int scale(int)", inputs=[int], output=int
                    )
                """
            )
        )
        registry.load_specification_dir(tmp_path)
        spec = registry.specification("scale")
        assert spec is not None
        assert spec.validate_input(3)
