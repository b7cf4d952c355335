"""
extctl Command Orchestrator

Dispatches one of list / install / uninstall per invocation and wires the
collaborators together at startup.

/ Orquestador: elige el comando y conecta los servicios.
"""

import logging
from typing import Any, Optional

from extctl.core.config import ExtctlConfig, ensure_dirs
from extctl.extensions.gallery import ExtensionGalleryService
from extctl.extensions.management import ExtensionManagementService
from extctl.extensions.planner import (
    GalleryService,
    ManagementService,
    Reporter,
    build_install_tasks,
    build_uninstall_tasks,
)
from extctl.extensions.sequencer import sequence

logger = logging.getLogger("extctl")


def _get(args: Any, key: str) -> Any:
    if isinstance(args, dict):
        return args.get(key)
    return getattr(args, key, None)


def _as_list(value) -> list[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


class Main:
    """Entry point for the extension commands."""

    def __init__(
        self,
        management: ManagementService,
        gallery: GalleryService,
        report: Reporter = print,
    ):
        self.management = management
        self.gallery = gallery
        self.report = report

    async def run(self, args: Any) -> None:
        """
        Run the one command selected in args.

        Args:
            args: Mapping or namespace with list_extensions, install_extension
                and/or uninstall_extension. With none of them set this is a
                no-op.
        """
        if _get(args, "list_extensions"):
            await self.list_extensions()
        elif _get(args, "install_extension"):
            await self.install_extensions(_as_list(_get(args, "install_extension")))
        elif _get(args, "uninstall_extension"):
            await self.uninstall_extensions(_as_list(_get(args, "uninstall_extension")))
        else:
            logger.debug("No extension command requested")

    async def list_extensions(self) -> None:
        for extension in await self.management.get_installed():
            self.report(extension.identifier)

    async def install_extensions(self, tokens: list[str]) -> None:
        await sequence(build_install_tasks(tokens, self.management, self.gallery, self.report))

    async def uninstall_extensions(self, ids: list[str]) -> None:
        await sequence(build_uninstall_tasks(ids, self.management, self.report))


async def main(args: Any, config: Optional[ExtctlConfig] = None, report: Reporter = print) -> None:
    """Create the startup directories, build the services and run the command."""
    config = config or ExtctlConfig.load()
    ensure_dirs(config)

    async with ExtensionGalleryService(config.gallery) as gallery:
        management = ExtensionManagementService(config.extensions_path, gallery=gallery)
        await Main(management, gallery, report=report).run(args)
