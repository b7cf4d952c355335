"""
extctl Marketplace Client

Queries the extension marketplace over HTTP (httpx) and downloads packages.
Only the first page of a query is ever read; nothing is cached between calls.

Security: honest User-Agent, no retries, a single timeout from config.

/ Cliente HTTP del marketplace de extensiones.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

import httpx

from extctl import __version__
from extctl.core.config import GalleryConfig
from extctl.core.errors import TransportError
from extctl.extensions import GalleryExtension, Page

logger = logging.getLogger("extctl.extensions.gallery")

# Marketplace query filter types
FILTER_TARGET = 8
FILTER_EXTENSION_NAME = 7
FILTER_SEARCH_TEXT = 10

# Query flags: include versions, files and asset URIs, latest version only
FLAG_INCLUDE_VERSIONS = 0x1
FLAG_INCLUDE_FILES = 0x2
FLAG_INCLUDE_ASSET_URI = 0x80
FLAG_LATEST_VERSION_ONLY = 0x200

TARGET_PLATFORM = "Microsoft.VisualStudio.Code"
PACKAGE_ASSET = "Microsoft.VisualStudio.Services.VSIXPackage"

_MAX_ERROR_BODY = 2000


class ExtensionGalleryService:
    """
    Thin async client for the marketplace `extensionquery` API.

    Every failure is raised as TransportError. When the server answered,
    the raw body is kept on the error so callers can look for a message.
    """

    def __init__(self, config: GalleryConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client or httpx.AsyncClient(
            timeout=config.timeout,
            follow_redirects=True,
            headers={"User-Agent": config.user_agent or f"extctl/{__version__}"},
        )

    async def __aenter__(self) -> "ExtensionGalleryService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Query ──────────────────────────────────────────────────

    async def query(
        self,
        names: Optional[Sequence[str]] = None,
        text: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page:
        """
        Query the marketplace by exact extension name(s) or by search text.

        Args:
            names: Extension ids (`publisher.name`) to match exactly.
            text: Free-text search, used when no names are given.
            page_size: Entries per page (default from config).

        Returns:
            The first result page.
        """
        url = f"{self.config.service_url.rstrip('/')}/extensionquery"
        body = build_query(names=names, text=text, page_size=page_size or self.config.page_size)
        logger.info(f"Querying marketplace: names={list(names or [])} text={text!r}")

        try:
            response = await self._client.post(
                url,
                json=body,
                headers={"Accept": "application/json;api-version=3.0-preview.1"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Marketplace query failed: HTTP {e.response.status_code}",
                response_text=e.response.text[:_MAX_ERROR_BODY],
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Marketplace query timed out after {self.config.timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Could not reach the marketplace: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(
                "Marketplace returned a response that is not JSON",
                response_text=response.text[:_MAX_ERROR_BODY],
            ) from e

        return parse_query_result(payload)

    # ── Download ───────────────────────────────────────────────

    async def download(self, extension: GalleryExtension, dest_dir: Path) -> Path:
        """Stream an extension package into dest_dir and return the file path."""
        target = Path(dest_dir) / f"{extension.identifier}-{extension.version}.vsix"
        logger.info(f"Downloading {extension.identifier} v{extension.version}")

        try:
            async with self._client.stream("GET", extension.download_url) as response:
                response.raise_for_status()
                f = await asyncio.to_thread(open, target, "wb")
                try:
                    async for chunk in response.aiter_bytes():
                        await asyncio.to_thread(f.write, chunk)
                finally:
                    await asyncio.to_thread(f.close)
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Download of {extension.identifier} failed: HTTP {e.response.status_code}",
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Download of {extension.identifier} timed out") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Download of {extension.identifier} failed: {e}") from e

        return target


def build_query(
    names: Optional[Sequence[str]] = None,
    text: Optional[str] = None,
    page_size: int = 10,
) -> dict:
    """Build an `extensionquery` request body."""
    criteria = [{"filterType": FILTER_TARGET, "value": TARGET_PLATFORM}]
    if names:
        criteria.extend({"filterType": FILTER_EXTENSION_NAME, "value": n} for n in names)
    elif text:
        criteria.append({"filterType": FILTER_SEARCH_TEXT, "value": text})

    return {
        "filters": [{
            "criteria": criteria,
            "pageNumber": 1,
            "pageSize": page_size,
            "sortBy": 0,
            "sortOrder": 0,
        }],
        "assetTypes": [],
        "flags": (
            FLAG_INCLUDE_VERSIONS
            | FLAG_INCLUDE_FILES
            | FLAG_INCLUDE_ASSET_URI
            | FLAG_LATEST_VERSION_ONLY
        ),
    }


def parse_query_result(payload: dict) -> Page:
    """Map a marketplace response to a Page, skipping entries without a version."""
    results = payload.get("results") if isinstance(payload, dict) else None
    result = results[0] if results else {}

    extensions = []
    for raw in result.get("extensions") or []:
        extension = _to_gallery_extension(raw)
        if extension is not None:
            extensions.append(extension)

    total = len(extensions)
    for meta in result.get("resultMetadata") or []:
        if meta.get("metadataType") != "ResultCount":
            continue
        for item in meta.get("metadataItems") or []:
            if item.get("name") == "TotalCount":
                total = item.get("count", total)

    return Page(first_page=extensions, total=total)


def _to_gallery_extension(raw: dict) -> Optional[GalleryExtension]:
    versions = raw.get("versions") or []
    publisher = (raw.get("publisher") or {}).get("publisherName")
    name = raw.get("extensionName")
    if not versions or not publisher or not name:
        logger.debug(f"Skipping incomplete marketplace entry: {raw.get('extensionId')}")
        return None

    latest = versions[0]
    download_url = ""
    for f in latest.get("files") or []:
        if f.get("assetType") == PACKAGE_ASSET:
            download_url = f.get("source", "")
            break
    if not download_url and latest.get("assetUri"):
        download_url = f"{latest['assetUri'].rstrip('/')}/{PACKAGE_ASSET}"

    return GalleryExtension(
        publisher=publisher,
        name=name,
        version=latest.get("version", ""),
        download_url=download_url,
        display_name=raw.get("displayName", ""),
        description=raw.get("shortDescription", ""),
    )
