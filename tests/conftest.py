"""Pytest configuration and fixtures for the update server tests."""

import pytest
from pathlib import Path
from typing import Callable, List

from fastapi.testclient import TestClient

from swupdate_server.api import create_app
from swupdate_server.config import ServerSettings
from swupdate_server.models.image import FilenameLayout


@pytest.fixture
def layout() -> FilenameLayout:
    """Default layout: image_device_version.ext"""
    return FilenameLayout()


@pytest.fixture
def images_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "images"
    directory.mkdir()
    return directory


@pytest.fixture
def add_images(images_dir: Path) -> Callable[..., List[Path]]:
    """Create image files with small dummy payloads."""
    def _add(*names: str) -> List[Path]:
        paths = []
        for name in names:
            path = images_dir / name
            path.write_bytes(b"SWU-" + name.encode("utf-8"))
            paths.append(path)
        return paths
    return _add


@pytest.fixture
def settings(images_dir: Path) -> ServerSettings:
    return ServerSettings(images_directory=images_dir)


@pytest.fixture
def client(settings: ServerSettings) -> TestClient:
    return TestClient(create_app(settings))
