"""Test configuration for repo-level tests."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path
from textwrap import dedent

import pytest

from spec_broker import Registry, RegistrySettings

HOST_MODULE = "spec_broker_e2e_imaging"
APP_DIR = "spec_broker_e2e_app"

HOST_SOURCE = '''
"""Types owned by the host application."""


class Image:
    def __init__(self, source, loader):
        self.source = source
        self.loader = loader
'''

SPEC_SOURCE = '''
import io

from spec_broker_e2e_imaging import Image


def register(registry):
    registry.specifications.define(
        "load_image_file",
        "Image load_image_file(path|stream)",
        inputs=[[str, io.IOBase]],
        output=Image,
    )
'''

PNG_SOURCE = '''
from spec_broker import ProviderBase, implements
from spec_broker_e2e_imaging import Image


def _rate(f):
    return 100 if isinstance(f, str) and f.endswith(".png") else 0


def register(registry):
    @registry.provider(name="PNG Format", version="1.0.1", author="Imaging Team")
    class PngFormat(ProviderBase):
        @implements("load_image_file", rating=_rate)
        def load_file(self, f):
            return Image(f, "png")
'''

NULL_SOURCE = '''
from spec_broker import ProviderBase, implements
from spec_broker_e2e_imaging import Image


def register(registry):
    @registry.provider(name="Null Handler", version="0.1")
    class NullHandler(ProviderBase):
        @implements("load_image_file", default_rating=10)
        def load_file(self, f):
            return Image(f, "null")
'''

THUMBNAILER_SOURCE = '''
from spec_broker import ProviderBase


def register(registry):
    @registry.provider(
        name="Thumbnailer", version="2.0", dependencies=[("PNG Format", "1.0")]
    )
    class Thumbnailer(ProviderBase):
        pass
'''

BROKEN_SOURCE = 'raise RuntimeError("this module must never be read")\n'


def _write(path: Path, source: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dedent(source))


@pytest.fixture
def app_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """
    Lay out a host application on sys.path:

        spec_broker_e2e_imaging.py
        spec_broker_e2e_app/specs/imaging.py
        spec_broker_e2e_app/plugins/formats/{a_thumbnailer,null_handler,png_format}.py
        spec_broker_e2e_app/plugins/shared/broken.py
        spec_broker_e2e_app/plugins/.hidden/broken.py
    """
    _write(tmp_path / f"{HOST_MODULE}.py", HOST_SOURCE)
    app = tmp_path / APP_DIR
    _write(app / "specs" / "imaging.py", SPEC_SOURCE)
    formats = app / "plugins" / "formats"
    _write(formats / "a_thumbnailer.py", THUMBNAILER_SOURCE)
    _write(formats / "null_handler.py", NULL_SOURCE)
    _write(formats / "png_format.py", PNG_SOURCE)
    _write(app / "plugins" / "shared" / "broken.py", BROKEN_SOURCE)
    _write(app / "plugins" / ".hidden" / "broken.py", BROKEN_SOURCE)

    monkeypatch.syspath_prepend(str(tmp_path))
    yield app
    sys.modules.pop(HOST_MODULE, None)


@pytest.fixture
def imaging_registry(app_root: Path) -> Registry:
    """Registry with the imaging specifications read and the plugin base dir added."""
    registry = Registry(RegistrySettings())
    registry.load_specification_dir(app_root / "specs")
    registry.add_base_dir(f"{APP_DIR}/plugins")
    return registry
