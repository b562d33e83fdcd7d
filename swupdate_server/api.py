from fastapi import FastAPI, Query, Request
from fastapi.staticfiles import StaticFiles
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
import logging
from html import escape
from typing import List, Optional
from urllib.parse import quote

from swupdate_server.config import ServerSettings
from swupdate_server.models.api_models import CatalogSummary, ConflictReport, UpdateQuery
from swupdate_server.models.catalog import CatalogScanError, ImageCatalog, list_image_files
from swupdate_server.resolver.core import Resolution, ResolutionKind, resolve_update
from swupdate_server.store import CatalogStore

logger = logging.getLogger(__name__)

IMAGES_PATH = "/images"
CONFLICT_ERROR = "More than one matching update image."


def image_location(file_reference: str) -> str:
    """URL under which the static file endpoint serves an image."""
    return f"{IMAGES_PATH}/{quote(file_reference)}"


def resolution_response(resolution: Resolution) -> Response:
    """Render a resolution as the HTTP response an SWUpdate client expects."""
    if resolution.kind is ResolutionKind.UPDATE_AVAILABLE:
        return RedirectResponse(
            image_location(resolution.file_reference),
            status_code=int(resolution.status_code),
        )
    if resolution.kind is ResolutionKind.CONFLICT:
        return Response(
            status_code=int(resolution.status_code),
            headers={"X-Error": CONFLICT_ERROR},
        )
    return Response(status_code=int(resolution.status_code))


def images_listing(filenames: List[str]) -> str:
    rows = []
    for name in filenames:
        try:
            href = image_location(name)
        except UnicodeEncodeError:
            continue
        rows.append(f'<li><a href="{escape(href)}">{escape(name)}</a></li>')
    return (
        "<!DOCTYPE html>\n<html>\n<head><meta charset=\"UTF-8\"><title>Index of /images</title></head>\n"
        "<body>\n<h1>Index of /images</h1>\n<ul>\n"
        + "\n".join(rows)
        + "\n</ul>\n</body>\n</html>\n"
    )


def catalog_summary(catalog: ImageCatalog, mode: str) -> CatalogSummary:
    return CatalogSummary(
        mode=mode,
        stats=catalog.get_stats(),
        entries=list(catalog.entries),
        conflicts=[
            ConflictReport(
                image_id=image_id,
                device_type=device_type,
                files=[entry.file_reference for entry in entries],
            )
            for (image_id, device_type), entries in catalog.conflicts().items()
        ],
    )


def create_app(settings: ServerSettings, store: Optional[CatalogStore] = None) -> FastAPI:
    """
    Build the update server application.

    The catalog is scanned once here, so an unreadable images directory
    fails at startup instead of on the first device request.

    Raises:
        CatalogScanError: if the images directory cannot be listed
    """
    if store is None:
        store = CatalogStore(settings.images_directory, settings.layout, settings.catalog_mode)
    store.refresh()

    app = FastAPI(
        title="SWUpdate Image Server",
        version="1.0.0",
        description="Offers update images to SWUpdate clients by image, device type and version"
    )
    app.state.store = store

    @app.exception_handler(CatalogScanError)
    async def catalog_scan_error(request: Request, exc: CatalogScanError):
        logger.error(f"❌ Catalog scan failed: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Images directory unavailable"},
            headers={"X-Error": "Cannot read images directory."},
        )

    # ============================================
    # UPDATE REQUEST
    # ============================================

    @app.get("/")
    def check_update(
        image: Optional[str] = Query(default=None, description="Image identifier"),
        device: Optional[str] = Query(default=None, description="Device type"),
        current_version: Optional[str] = Query(default=None, description="Installed version"),
    ):
        """
        Update check for SWUpdate clients.

        302 with Location if an image with a different version exists,
        404 if not, 400 if a parameter is missing and 500 if the
        images directory holds more than one match.
        """
        query = UpdateQuery(image=image, device=device, current_version=current_version)
        if not query.is_complete():
            return resolution_response(resolve_update((), query))
        return resolution_response(resolve_update(store.snapshot(), query))

    # ============================================
    # OPERATOR ENDPOINTS
    # ============================================

    @app.get("/health")
    def health():
        catalog = store.snapshot()
        return {
            "status": "healthy",
            "images": len(catalog),
            "mode": store.mode.value,
        }

    @app.get("/api/catalog", response_model=CatalogSummary)
    def get_catalog():
        """Entries and conflicts of the current catalog."""
        return catalog_summary(store.snapshot(), store.mode.value)

    @app.post("/api/catalog/refresh", response_model=CatalogSummary)
    def refresh_catalog():
        """Rebuild the catalog from the images directory."""
        return catalog_summary(store.refresh(), store.mode.value)

    # ============================================
    # IMAGE DOWNLOADS
    # ============================================

    @app.get(f"{IMAGES_PATH}/", response_class=HTMLResponse)
    def list_images():
        """Browsable listing of the images directory."""
        return images_listing(list_image_files(store.images_directory))

    app.mount(IMAGES_PATH, StaticFiles(directory=str(settings.images_directory)), name="images")
    logger.info(f"✅ Serving images from {settings.images_directory.absolute()} under {IMAGES_PATH}")

    return app
