"""Tests for catalog snapshot handling."""

import logging

import pytest

from swupdate_server.models.catalog import CatalogScanError
from swupdate_server.store import CatalogMode, CatalogStore


class TestRescanMode:

    def test_sees_new_files_immediately(self, images_dir, add_images, layout):
        store = CatalogStore(images_dir, layout)
        assert len(store.snapshot()) == 0

        add_images("app_dev_1.0.img")

        assert [e.file_reference for e in store.snapshot()] == ["app_dev_1.0.img"]

    def test_each_snapshot_is_independent(self, images_dir, add_images, layout):
        add_images("app_dev_1.0.img")
        store = CatalogStore(images_dir, layout, CatalogMode.RESCAN)

        first = store.snapshot()
        add_images("tool_dev_1.0.img")

        assert len(first) == 1
        assert len(store.snapshot()) == 2

    def test_scan_error(self, tmp_path, layout):
        store = CatalogStore(tmp_path / "missing", layout)

        with pytest.raises(CatalogScanError):
            store.snapshot()


class TestCachedMode:

    def test_stale_until_refresh(self, images_dir, add_images, layout):
        add_images("app_dev_1.0.img")
        store = CatalogStore(images_dir, layout, CatalogMode.CACHED)
        before = store.snapshot()

        add_images("tool_dev_1.0.img")
        assert store.snapshot() is before

        after = store.refresh()
        assert store.snapshot() is after
        assert len(before) == 1
        assert len(after) == 2

    def test_accepts_mode_name(self, images_dir, layout):
        store = CatalogStore(images_dir, layout, "cached")

        assert store.mode is CatalogMode.CACHED

    def test_refresh_logs_conflicts(self, images_dir, add_images, layout, caplog):
        add_images("app_dev_1.0.img", "app_dev_2.0.img")
        store = CatalogStore(images_dir, layout, CatalogMode.CACHED)

        with caplog.at_level(logging.WARNING, logger="swupdate_server.store"):
            store.refresh()

        assert any("app/dev" in record.getMessage() for record in caplog.records)
