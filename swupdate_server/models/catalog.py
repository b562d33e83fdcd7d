"""
Image Catalog Module
Turns a directory of update image files into an immutable catalog,
using the filename itself as the schema.
"""

import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .image import CatalogEntry, FilenameLayout

logger = logging.getLogger(__name__)


class CatalogScanError(OSError):
    """The images directory could not be listed."""


# ============================================
# FILENAME PARSING
# ============================================

def filename_stem(name: str) -> str:
    """
    Strip the final extension from a filename.

    Args:
        name: File name, e.g. "test-app_raspberrypi0-2w-64_0.2.0.img"

    Returns:
        Everything before the last dot, or the whole name if it has none

    Examples:
        >>> filename_stem("test-app_raspberrypi0-2w-64_0.2.0.img")
        'test-app_raspberrypi0-2w-64_0.2.0'
        >>> filename_stem("README")
        'README'
    """
    stem, dot, _extension = name.rpartition(".")
    return stem if dot else name


def parse_filename(name: str, layout: FilenameLayout) -> Optional[CatalogEntry]:
    """
    Parse a single filename into a catalog entry.

    Args:
        name: File name inside the images directory
        layout: Separator and field positions

    Returns:
        CatalogEntry, or None if the name does not carry all three fields
        or is not valid UTF-8
    """
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        return None

    fields = filename_stem(name).split(layout.separator)
    if len(fields) < layout.required_fields:
        return None

    image_id = fields[layout.image_id_field]
    device_type = fields[layout.device_type_field]
    version = fields[layout.version_field]
    if not (image_id and device_type and version):
        return None

    return CatalogEntry(
        image_id=image_id,
        device_type=device_type,
        version=version,
        file_reference=name,
    )


def build_catalog(filenames: Iterable[str], layout: FilenameLayout) -> "ImageCatalog":
    """
    Build a catalog from a directory listing.

    Pure function of (listing, layout). Names that do not parse are
    skipped; directories commonly hold unrelated files.

    Args:
        filenames: File names, in any order
        layout: Separator and field positions

    Returns:
        ImageCatalog with entries in lexical filename order
    """
    entries = []
    for name in sorted(filenames):
        entry = parse_filename(name, layout)
        if entry is None:
            logger.debug(f"Skipping unrecognised filename: {name!r}")
            continue
        entries.append(entry)
    return ImageCatalog(entries)


def list_image_files(directory: Path) -> List[str]:
    """Sorted names of the regular files in ``directory``."""
    try:
        return sorted(p.name for p in Path(directory).iterdir() if p.is_file())
    except OSError as e:
        raise CatalogScanError(f"Cannot read images directory {directory}: {e}") from e


# ============================================
# CATALOG SNAPSHOT
# ============================================

class ImageCatalog:
    """
    Immutable snapshot of the update images available at one point in time.

    Conflicting entries (same image and device type) are kept as-is; they
    are reported by conflicts() and surface when an update is resolved.
    """

    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._entries: Tuple[CatalogEntry, ...] = tuple(entries)

    @classmethod
    def from_listing(cls, filenames: Iterable[str], layout: FilenameLayout) -> "ImageCatalog":
        return build_catalog(filenames, layout)

    @classmethod
    def scan(cls, directory: Path, layout: FilenameLayout) -> "ImageCatalog":
        """
        Build a catalog from the files currently in ``directory``.

        Raises:
            CatalogScanError: if the directory cannot be listed
        """
        return build_catalog(list_image_files(directory), layout)

    @property
    def entries(self) -> Tuple[CatalogEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"ImageCatalog(entries={len(self._entries)})"

    # ============================================
    # LOOKUP
    # ============================================

    def find(self, image_id: str, device_type: str) -> List[CatalogEntry]:
        """Entries for an image / device pair (exact, case-sensitive)."""
        return [
            entry for entry in self._entries
            if entry.image_id == image_id and entry.device_type == device_type
        ]

    def conflicts(self) -> Dict[Tuple[str, str], List[CatalogEntry]]:
        """Image / device pairs claimed by more than one file."""
        grouped: Dict[Tuple[str, str], List[CatalogEntry]] = defaultdict(list)
        for entry in self._entries:
            grouped[entry.key].append(entry)
        return {key: entries for key, entries in grouped.items() if len(entries) > 1}

    def get_stats(self) -> Dict:
        """Get catalog statistics."""
        return {
            "total_images": len(self._entries),
            "image_ids": len({entry.image_id for entry in self._entries}),
            "device_types": len({entry.device_type for entry in self._entries}),
            "conflicts": len(self.conflicts()),
        }
