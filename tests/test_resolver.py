"""Tests for update resolution."""

from http import HTTPStatus
from pathlib import Path
from typing import List

from hypothesis import given, settings
from hypothesis import strategies as st

from swupdate_server.models.api_models import UpdateQuery
from swupdate_server.models.catalog import ImageCatalog, build_catalog
from swupdate_server.models.image import CatalogEntry, FilenameLayout
from swupdate_server.resolver.core import (
    Resolution,
    ResolutionKind,
    resolve_from_directory,
    resolve_update,
)

LAYOUT = FilenameLayout()

names = st.sampled_from(["app", "App", "tool", "test-app"])
devices = st.sampled_from(["dev", "rpi4", "raspberrypi0-2w-64"])
versions = st.sampled_from(["0.1.0", "0.2.0", "1.0", "2.0"])


@st.composite
def catalog_entries(draw) -> CatalogEntry:
    image_id, device_type, version = draw(names), draw(devices), draw(versions)
    suffix = draw(st.integers(min_value=0, max_value=99))
    return CatalogEntry(
        image_id=image_id,
        device_type=device_type,
        version=version,
        file_reference=f"{image_id}_{device_type}_{version}_{suffix}.img",
    )


catalogs = st.lists(catalog_entries(), max_size=8).map(ImageCatalog)


def entry(image_id: str, device_type: str, version: str) -> CatalogEntry:
    return CatalogEntry(
        image_id=image_id,
        device_type=device_type,
        version=version,
        file_reference=f"{image_id}_{device_type}_{version}.img",
    )


def query(image="app", device="dev", current_version="1.0") -> UpdateQuery:
    return UpdateQuery(image=image, device=device, current_version=current_version)


# ============================================
# PROPERTIES
# ============================================

@settings(max_examples=100)
@given(
    catalog=catalogs,
    image=st.sampled_from([None, "", "app"]),
    device=st.sampled_from([None, "", "dev"]),
    current_version=st.sampled_from([None, "", "1.0"]),
)
def test_incomplete_query_is_malformed(catalog, image, device, current_version):
    q = UpdateQuery(image=image, device=device, current_version=current_version)
    resolution = resolve_update(catalog, q)

    if q.is_complete():
        assert resolution.kind is not ResolutionKind.MALFORMED_REQUEST
    else:
        assert resolution == Resolution.malformed_request()


@settings(max_examples=200)
@given(catalog=catalogs, image=names, device=devices, current_version=versions)
def test_classification_by_match_count(catalog, image, device, current_version):
    q = UpdateQuery(image=image, device=device, current_version=current_version)
    matches: List[CatalogEntry] = catalog.find(image, device)

    resolution = resolve_update(catalog, q)

    if not matches:
        assert resolution.kind is ResolutionKind.NO_UPDATE
    elif len(matches) > 1:
        assert resolution.kind is ResolutionKind.CONFLICT
        assert resolution.candidates == tuple(m.file_reference for m in matches)
    elif matches[0].version == current_version:
        assert resolution.kind is ResolutionKind.NO_UPDATE
    else:
        assert resolution.kind is ResolutionKind.UPDATE_AVAILABLE
        assert resolution.file_reference == matches[0].file_reference


# ============================================
# EXAMPLES
# ============================================

class TestResolveUpdate:

    def test_update_available(self):
        catalog = build_catalog(["test-app_raspberrypi0-2w-64_0.2.0.img"], LAYOUT)

        resolution = resolve_update(
            catalog, query("test-app", "raspberrypi0-2w-64", "0.1.0")
        )

        assert resolution.kind is ResolutionKind.UPDATE_AVAILABLE
        assert resolution.file_reference == "test-app_raspberrypi0-2w-64_0.2.0.img"
        assert resolution.status_code == HTTPStatus.FOUND

    def test_up_to_date(self):
        catalog = build_catalog(["test-app_raspberrypi0-2w-64_0.2.0.img"], LAYOUT)

        resolution = resolve_update(
            catalog, query("test-app", "raspberrypi0-2w-64", "0.2.0")
        )

        assert resolution.kind is ResolutionKind.NO_UPDATE
        assert resolution.file_reference is None
        assert resolution.status_code == HTTPStatus.NOT_FOUND

    def test_older_version_is_still_offered(self):
        catalog = ImageCatalog([entry("app", "dev", "1.0")])

        resolution = resolve_update(catalog, query(current_version="9.9"))

        assert resolution.kind is ResolutionKind.UPDATE_AVAILABLE

    def test_conflict_regardless_of_versions(self):
        catalog = build_catalog(["app_dev_1.0.img", "app_dev_2.0.img"], LAYOUT)

        resolution = resolve_update(catalog, query(current_version="0.5"))

        assert resolution.kind is ResolutionKind.CONFLICT
        assert resolution.candidates == ("app_dev_1.0.img", "app_dev_2.0.img")
        assert resolution.status_code == HTTPStatus.INTERNAL_SERVER_ERROR

    def test_conflict_even_when_one_version_matches(self):
        catalog = ImageCatalog([entry("app", "dev", "1.0"), entry("app", "dev", "1.0-rc")])

        assert resolve_update(catalog, query()).kind is ResolutionKind.CONFLICT

    def test_empty_catalog(self):
        resolution = resolve_update(ImageCatalog(), query())

        assert resolution.kind is ResolutionKind.NO_UPDATE

    def test_other_device_does_not_match(self):
        catalog = ImageCatalog([entry("app", "rpi4", "2.0")])

        assert resolve_update(catalog, query()).kind is ResolutionKind.NO_UPDATE

    def test_case_sensitive_match(self):
        catalog = ImageCatalog([entry("App", "dev", "2.0")])

        assert resolve_update(catalog, query()).kind is ResolutionKind.NO_UPDATE

    def test_missing_device(self):
        catalog = ImageCatalog([entry("app", "dev", "2.0")])

        resolution = resolve_update(catalog, query(device=None))

        assert resolution.kind is ResolutionKind.MALFORMED_REQUEST
        assert resolution.status_code == HTTPStatus.BAD_REQUEST

    def test_accepts_plain_sequence(self):
        resolution = resolve_update([entry("app", "dev", "2.0")], query())

        assert resolution.file_reference == "app_dev_2.0.img"


class TestResolveFromDirectory:

    def test_scans_directory(self, images_dir, add_images):
        add_images("app_dev_2.0.img")

        resolution = resolve_from_directory(images_dir, LAYOUT, query())

        assert resolution.file_reference == "app_dev_2.0.img"

    def test_malformed_query_does_not_scan(self, tmp_path: Path):
        resolution = resolve_from_directory(tmp_path / "missing", LAYOUT, query(image=""))

        assert resolution.kind is ResolutionKind.MALFORMED_REQUEST
