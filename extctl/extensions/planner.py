"""
extctl Install / Uninstall Planners

Turn the identifiers given on the command line into an ordered list of
tasks for the sequencer. Local package files always come first, then the
marketplace names, each group keeping the order it was given in.

/ Planificadores: convierten los argumentos en una lista ordenada de tareas.
"""

import json
import logging
import os
from functools import partial
from typing import Callable, Optional, Protocol, Sequence

from extctl.core.errors import GalleryError, NotFoundError, NotInstalledError, TransportError
from extctl.extensions import GalleryExtension, InstalledExtension, Page
from extctl.extensions.identity import is_package_path
from extctl.extensions.sequencer import Task

logger = logging.getLogger("extctl.extensions.planner")

Reporter = Callable[[str], None]


class ManagementService(Protocol):
    async def get_installed(self) -> list[InstalledExtension]: ...

    async def install(self, path: str) -> InstalledExtension: ...

    async def install_from_gallery(self, extension: GalleryExtension) -> InstalledExtension: ...

    async def uninstall(self, extension: InstalledExtension) -> None: ...


class GalleryService(Protocol):
    async def query(self, names: Optional[Sequence[str]] = None) -> Page: ...


# ─────────────────────────────────────────────────────────────
# Install
# ─────────────────────────────────────────────────────────────

def build_install_tasks(
    tokens: Sequence[str],
    management: ManagementService,
    gallery: GalleryService,
    report: Reporter,
    cwd: Optional[str] = None,
) -> list[Task]:
    """
    Plan the install of every token.

    Args:
        tokens: Package paths (*.vsix) and/or marketplace ids.
        management: Service that owns the installed set.
        gallery: Marketplace client.
        report: Receives one human-readable line per event.
        cwd: Base for relative package paths (default: process cwd).

    Returns:
        Path tasks first, then marketplace tasks.
    """
    path_tokens = [t for t in tokens if is_package_path(t)]
    name_tokens = [t for t in tokens if not is_package_path(t)]

    base = cwd or os.getcwd()
    path_tasks: list[Task] = [
        partial(_install_package, token if os.path.isabs(token) else os.path.join(base, token), management, report)
        for token in path_tokens
    ]
    gallery_tasks: list[Task] = [
        partial(_install_from_gallery, token, management, gallery, report)
        for token in name_tokens
    ]

    logger.debug(f"Planned {len(path_tasks)} package and {len(gallery_tasks)} marketplace installs")
    return path_tasks + gallery_tasks


async def _install_package(path: str, management: ManagementService, report: Reporter) -> None:
    # Re-installing the same file is the management service's call.
    await management.install(path)
    report(f"Extension '{os.path.basename(path)}' was successfully installed!")


async def _install_from_gallery(
    identifier: str,
    management: ManagementService,
    gallery: GalleryService,
    report: Reporter,
) -> None:
    installed = await management.get_installed()
    if any(e.identifier == identifier for e in installed):
        report(f"Extension '{identifier}' is already installed.")
        return

    result = await query_gallery(gallery, identifier)
    if not result.first_page:
        raise NotFoundError(identifier)

    # No disambiguation: the first entry of the first page wins.
    extension = result.first_page[0]
    report(f"Found '{identifier}' in the marketplace.")
    report("Installing...")

    await management.install_from_gallery(extension)
    report(f"Extension '{identifier}' v{extension.version} was successfully installed!")


async def query_gallery(gallery: GalleryService, identifier: str) -> Page:
    """
    Query the marketplace for one exact name.

    When the server answered with a JSON body carrying a `message`, that
    message becomes the error. Any other transport failure propagates as is.
    """
    try:
        return await gallery.query(names=[identifier])
    except TransportError as e:
        if not e.response_text:
            raise
        try:
            body = json.loads(e.response_text)
        except ValueError:
            raise e
        message = body.get("message") if isinstance(body, dict) else None
        if not isinstance(message, str) or not message:
            raise
        raise GalleryError(message) from e


# ─────────────────────────────────────────────────────────────
# Uninstall
# ─────────────────────────────────────────────────────────────

def build_uninstall_tasks(
    ids: Sequence[str],
    management: ManagementService,
    report: Reporter,
) -> list[Task]:
    """Plan the uninstall of every id, in the order given."""
    return [partial(_uninstall, identifier, management, report) for identifier in ids]


async def _uninstall(identifier: str, management: ManagementService, report: Reporter) -> None:
    installed = await management.get_installed()
    matches = [e for e in installed if e.identifier == identifier]
    if not matches:
        raise NotInstalledError(identifier)

    report(f"Uninstalling {identifier}...")
    await management.uninstall(matches[0])
    report(f"Extension '{identifier}' was successfully uninstalled!")
