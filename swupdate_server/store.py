"""
Catalog Store
Hands out catalog snapshots to request handlers, either rebuilt from the
images directory on every request or cached and swapped on refresh.
"""

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Optional

from swupdate_server.models.catalog import ImageCatalog
from swupdate_server.models.image import FilenameLayout

logger = logging.getLogger(__name__)


class CatalogMode(str, Enum):
    RESCAN = "rescan"
    CACHED = "cached"


class CatalogStore:
    """
    Owner of the current catalog snapshot.

    In RESCAN mode every snapshot() call lists the directory again, so
    files added or removed are visible immediately. In CACHED mode the
    snapshot is built by refresh() and replaced as a whole; readers keep
    whichever complete catalog they were handed.
    """

    def __init__(self, images_directory: Path, layout: FilenameLayout,
                 mode: CatalogMode = CatalogMode.RESCAN):
        self.images_directory = Path(images_directory)
        self.layout = layout
        self.mode = CatalogMode(mode)
        self._lock = threading.Lock()
        self._catalog: Optional[ImageCatalog] = None

    def snapshot(self) -> ImageCatalog:
        """
        Current catalog.

        Raises:
            CatalogScanError: if the directory has to be scanned and cannot be
        """
        if self.mode is CatalogMode.RESCAN:
            return ImageCatalog.scan(self.images_directory, self.layout)

        catalog = self._catalog
        if catalog is None:
            catalog = self.refresh()
        return catalog

    def refresh(self) -> ImageCatalog:
        """Rebuild the catalog from the directory and publish it."""
        with self._lock:
            catalog = ImageCatalog.scan(self.images_directory, self.layout)
            self._catalog = catalog

        stats = catalog.get_stats()
        logger.info(
            f"✅ Catalog built from {self.images_directory}: "
            f"{stats['total_images']} images, {stats['image_ids']} image ids, "
            f"{stats['device_types']} device types"
        )
        for (image_id, device_type), entries in catalog.conflicts().items():
            logger.warning(
                f"⚠️ Conflict: {len(entries)} images for {image_id}/{device_type}: "
                f"{[entry.file_reference for entry in entries]}"
            )
        return catalog
