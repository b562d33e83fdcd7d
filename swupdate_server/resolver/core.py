"""
Update Resolver Core Module
Decides, for one device query, whether an update image is available.
"""

import logging
from enum import Enum
from http import HTTPStatus
from pathlib import Path
from typing import Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from swupdate_server.models.api_models import UpdateQuery
from swupdate_server.models.catalog import ImageCatalog
from swupdate_server.models.image import CatalogEntry, FilenameLayout

logger = logging.getLogger(__name__)


# ============================================
# RESOLUTION OUTCOME
# ============================================

class ResolutionKind(str, Enum):
    NO_UPDATE = "no_update"
    UPDATE_AVAILABLE = "update_available"
    CONFLICT = "conflict"
    MALFORMED_REQUEST = "malformed_request"


_STATUS_CODES = {
    ResolutionKind.MALFORMED_REQUEST: HTTPStatus.BAD_REQUEST,
    ResolutionKind.NO_UPDATE: HTTPStatus.NOT_FOUND,
    ResolutionKind.UPDATE_AVAILABLE: HTTPStatus.FOUND,
    ResolutionKind.CONFLICT: HTTPStatus.INTERNAL_SERVER_ERROR,
}


class Resolution(BaseModel):
    """
    Outcome of resolving one update query.

    ``file_reference`` is set only for UPDATE_AVAILABLE. ``candidates``
    lists the files that matched the image / device pair.
    """
    model_config = ConfigDict(frozen=True)

    kind: ResolutionKind
    file_reference: Optional[str] = None
    candidates: Tuple[str, ...] = ()

    @classmethod
    def no_update(cls, candidates: Tuple[str, ...] = ()) -> "Resolution":
        return cls(kind=ResolutionKind.NO_UPDATE, candidates=candidates)

    @classmethod
    def update_available(cls, entry: CatalogEntry) -> "Resolution":
        return cls(
            kind=ResolutionKind.UPDATE_AVAILABLE,
            file_reference=entry.file_reference,
            candidates=(entry.file_reference,),
        )

    @classmethod
    def conflict(cls, candidates: Tuple[str, ...]) -> "Resolution":
        return cls(kind=ResolutionKind.CONFLICT, candidates=candidates)

    @classmethod
    def malformed_request(cls) -> "Resolution":
        return cls(kind=ResolutionKind.MALFORMED_REQUEST)

    @property
    def status_code(self) -> HTTPStatus:
        return _STATUS_CODES[self.kind]


# ============================================
# RESOLUTION
# ============================================

def resolve_update(catalog: Iterable[CatalogEntry], query: UpdateQuery) -> Resolution:
    """
    Resolve a device query against a catalog snapshot.

    Matching on image and device type is exact and case-sensitive.
    Versions are compared for equality only: any version different
    from the device's current one is offered, older or newer.

    Args:
        catalog: ImageCatalog or any iterable of CatalogEntry
        query: Image, device type and currently installed version

    Returns:
        Exactly one Resolution; never raises for a well-typed input

    Examples:
        >>> catalog = ImageCatalog([CatalogEntry(image_id="app", device_type="dev",
        ...                                      version="2.0", file_reference="app_dev_2.0.img")])
        >>> resolve_update(catalog, UpdateQuery(image="app", device="dev", current_version="1.0")).kind
        <ResolutionKind.UPDATE_AVAILABLE: 'update_available'>
    """
    if not query.is_complete():
        logger.info(f"Malformed update request, missing: {query.missing_fields()}")
        return Resolution.malformed_request()

    matches = [
        entry for entry in catalog
        if entry.image_id == query.image and entry.device_type == query.device
    ]
    candidates = tuple(entry.file_reference for entry in matches)

    if len(matches) > 1:
        logger.warning(
            f"Conflict for {query.image}/{query.device}: "
            f"{len(matches)} matching images {list(candidates)}"
        )
        return Resolution.conflict(candidates)

    if not matches:
        logger.info(f"No image for {query.image}/{query.device}")
        return Resolution.no_update()

    entry = matches[0]
    if entry.version == query.current_version:
        logger.info(f"{query.image}/{query.device} is up to date ({entry.version})")
        return Resolution.no_update(candidates)

    logger.info(
        f"Update for {query.image}/{query.device}: "
        f"{query.current_version} -> {entry.version} ({entry.file_reference})"
    )
    return Resolution.update_available(entry)


def resolve_from_directory(directory: Path, layout: FilenameLayout, query: UpdateQuery) -> Resolution:
    """
    Scan ``directory`` and resolve ``query`` against the fresh catalog.

    A malformed query is answered without touching the filesystem.

    Raises:
        CatalogScanError: if the directory cannot be listed
    """
    if not query.is_complete():
        return resolve_update((), query)
    return resolve_update(ImageCatalog.scan(directory, layout), query)
