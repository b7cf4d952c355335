"""
extctl Extension Management Service

Owns the installed set: extracts packages into the extensions directory and
keeps an `installed.json` registry of what is there.

Layout:
    <extensions_dir>/installed.json
    <extensions_dir>/<publisher>.<name>-<version>/...

/ Servicio de gestion: instala, desinstala y lista extensiones en disco.
"""

import asyncio
import json
import logging
import shutil
import tempfile
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from extctl.core.errors import InstallError
from extctl.extensions import GalleryExtension, InstalledExtension, check_manifest, identity_of

logger = logging.getLogger("extctl.extensions.management")

INSTALLED_FILE = "installed.json"

# Where a package keeps its manifest, in lookup order
_MANIFEST_ENTRIES = ("extension/package.json", "package.json")


class ExtensionManagementService:
    """Directory-backed store of installed extensions."""

    def __init__(self, extensions_dir: Path, gallery=None):
        self.extensions_dir = Path(extensions_dir)
        self.gallery = gallery

    @property
    def installed_file(self) -> Path:
        return self.extensions_dir / INSTALLED_FILE

    # ── Registry ───────────────────────────────────────────────

    def _load_installed(self) -> dict:
        """Load the installed extensions registry."""
        if self.installed_file.exists():
            try:
                data = json.loads(self.installed_file.read_text(encoding="utf-8"))
                if isinstance(data, dict):
                    return data
                logger.warning(f"Ignoring malformed registry {self.installed_file}")
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load registry {self.installed_file}: {e}")
        return {}

    def _save_installed(self, data: dict):
        """Save the installed extensions registry."""
        self.extensions_dir.mkdir(parents=True, exist_ok=True)
        self.installed_file.write_text(
            json.dumps(data, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    # ── Queries ────────────────────────────────────────────────

    async def get_installed(self) -> list[InstalledExtension]:
        """Installed extensions, in the order they were installed."""
        installed = await asyncio.to_thread(self._load_installed)
        extensions = []
        for identifier, info in installed.items():
            if not isinstance(info, dict):
                continue
            manifest = check_manifest(info.get("manifest"), source=identifier)
            if manifest is None:
                continue
            path = info.get("path")
            extensions.append(InstalledExtension(manifest=manifest, path=Path(path) if path else None))
        return extensions

    # ── Install ────────────────────────────────────────────────

    async def install(self, path: str) -> InstalledExtension:
        """
        Install a local package file.

        Args:
            path: Absolute path to a .vsix (zip) package.

        Returns:
            The installed extension.

        Raises:
            InstallError: missing file, not a zip, or no usable manifest.
        """
        return await asyncio.to_thread(self._install_package, Path(path))

    async def install_from_gallery(self, extension: GalleryExtension) -> InstalledExtension:
        """Download a marketplace entry and install it like a local package."""
        if self.gallery is None:
            raise InstallError("No marketplace configured")
        if not extension.download_url:
            raise InstallError(f"Marketplace entry {extension.identifier} has no package to download")

        with tempfile.TemporaryDirectory(prefix="extctl-download-") as tmp:
            package = await self.gallery.download(extension, Path(tmp))
            manifest = await asyncio.to_thread(_read_package_manifest, package)
            if identity_of(manifest) != extension.identifier:
                raise InstallError(
                    f"Downloaded package is {identity_of(manifest)}, expected {extension.identifier}"
                )
            return await asyncio.to_thread(self._install_package, package)

    def _install_package(self, package: Path) -> InstalledExtension:
        if not package.is_file():
            raise InstallError(f"Package not found: {package}")

        manifest = _read_package_manifest(package)
        identifier = identity_of(manifest)
        target = self.extensions_dir / f"{identifier}-{manifest['version']}"

        # Extract next to the target first; the installed copy is only
        # replaced once the new one is complete.
        staging = target.with_name(target.name + ".tmp")
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True)
        logger.info(f"Extracting {package.name} to {staging}")
        try:
            with zipfile.ZipFile(package) as archive:
                archive.extractall(staging)
        except (zipfile.BadZipFile, OSError) as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise InstallError(f"Failed to extract {package.name}: {e}") from e

        installed = self._load_installed()
        previous = installed.get(identifier)
        if previous and previous.get("path"):
            old_dir = Path(previous["path"])
            if old_dir.exists() and old_dir != target:
                logger.info(f"Replacing {identifier} at {old_dir}")
                shutil.rmtree(old_dir)

        if target.exists():
            shutil.rmtree(target)
        staging.rename(target)

        installed.pop(identifier, None)
        installed[identifier] = {
            "manifest": manifest,
            "path": str(target),
            "installed_at": datetime.now().isoformat(),
        }
        self._save_installed(installed)

        return InstalledExtension(manifest=manifest, path=target)

    # ── Uninstall ──────────────────────────────────────────────

    async def uninstall(self, extension: InstalledExtension) -> None:
        """Remove an installed extension from disk and from the registry."""
        await asyncio.to_thread(self._uninstall, extension.identifier)

    def _uninstall(self, identifier: str) -> None:
        installed = self._load_installed()
        info = installed.pop(identifier, None)
        if info is None:
            raise InstallError(f"Extension '{identifier}' is not installed")

        path: Optional[str] = info.get("path")
        if path and Path(path).exists():
            logger.info(f"Removing {path}")
            shutil.rmtree(path)

        self._save_installed(installed)


def _read_package_manifest(package: Path) -> dict:
    """Read and check the manifest inside a package, without extracting it."""
    try:
        with zipfile.ZipFile(package) as archive:
            names = set(archive.namelist())
            for entry in _MANIFEST_ENTRIES:
                if entry in names:
                    raw = archive.read(entry)
                    break
            else:
                raise InstallError(f"{package.name} has no package.json manifest")
    except zipfile.BadZipFile as e:
        raise InstallError(f"{package.name} is not a valid extension package: {e}") from e

    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InstallError(f"{package.name} has an unreadable manifest: {e}") from e

    manifest = check_manifest(data, source=package.name)
    if manifest is None:
        raise InstallError(f"{package.name} manifest needs publisher, name and version")
    return manifest
