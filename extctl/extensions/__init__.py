"""
extctl Extension Model

Extensions are zip packages (.vsix) carrying a `package.json` manifest that
names at least the publisher, the extension name and its version. The
canonical id `<publisher>.<name>` is the only key used to compare installed,
marketplace and requested extensions.

/ Modelo de extensiones: manifiesto, extension instalada, entrada del marketplace.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from extctl.extensions.identity import identity_of, is_package_path

logger = logging.getLogger("extctl.extensions")

REQUIRED_FIELDS = ("publisher", "name", "version")


def load_manifest(manifest_path: Path) -> Optional[dict]:
    """Load an extension manifest file and check the fields extctl relies on."""
    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to load manifest {manifest_path}: {e}")
        return None

    return check_manifest(data, source=str(manifest_path))


def check_manifest(data, source: str = "manifest") -> Optional[dict]:
    """Return data if it is a manifest with all required fields, else None."""
    if not isinstance(data, dict):
        logger.warning(f"Manifest {source} is not a JSON object")
        return None

    for name in REQUIRED_FIELDS:
        if not isinstance(data.get(name), str) or not data[name]:
            logger.warning(f"Manifest {source} missing required field: {name}")
            return None

    return data


@dataclass(frozen=True)
class InstalledExtension:
    """Snapshot of one installed extension, as reported by the management service."""

    manifest: dict
    path: Optional[Path] = None

    @property
    def identifier(self) -> str:
        return identity_of(self.manifest)

    @property
    def version(self) -> str:
        return self.manifest.get("version", "unknown")


@dataclass(frozen=True)
class GalleryExtension:
    """One marketplace entry. Fetched per query, never cached."""

    publisher: str
    name: str
    version: str
    download_url: str
    display_name: str = ""
    description: str = ""

    @property
    def identifier(self) -> str:
        return identity_of({"publisher": self.publisher, "name": self.name})


@dataclass
class Page:
    """First page of a marketplace query plus the server-side total."""

    first_page: list[GalleryExtension] = field(default_factory=list)
    total: int = 0


__all__ = [
    "GalleryExtension",
    "InstalledExtension",
    "Page",
    "check_manifest",
    "identity_of",
    "is_package_path",
    "load_manifest",
]
