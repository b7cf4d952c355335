"""
Shared fakes for the extension services.

Both fakes append to a shared `events` list so tests can assert on the
exact order calls happened in.
"""

import pytest

from extctl.core.errors import InstallError
from extctl.extensions import GalleryExtension, InstalledExtension, Page


def installed(identifier: str, version: str = "1.0.0") -> InstalledExtension:
    publisher, name = identifier.split(".", 1)
    return InstalledExtension(manifest={"publisher": publisher, "name": name, "version": version})


def gallery_entry(identifier: str, version: str = "1.0.0") -> GalleryExtension:
    publisher, name = identifier.split(".", 1)
    return GalleryExtension(
        publisher=publisher,
        name=name,
        version=version,
        download_url=f"https://example.test/{identifier}/{version}.vsix",
    )


class FakeManagement:
    def __init__(self, events: list, extensions=None):
        self.events = events
        self.extensions = list(extensions or [])
        self.fail_install: set[str] = set()

    async def get_installed(self):
        self.events.append(("get_installed",))
        return list(self.extensions)

    async def install(self, path):
        self.events.append(("install", path))
        if path in self.fail_install:
            raise InstallError(f"cannot install {path}")

    async def install_from_gallery(self, extension):
        self.events.append(("install_from_gallery", extension.identifier))
        if extension.identifier in self.fail_install:
            raise InstallError(f"cannot install {extension.identifier}")
        result = installed(extension.identifier, extension.version)
        self.extensions.append(result)
        return result

    async def uninstall(self, extension):
        self.events.append(("uninstall", extension.identifier))
        self.extensions = [e for e in self.extensions if e.identifier != extension.identifier]


class FakeGallery:
    def __init__(self, events: list):
        self.events = events
        self.results: dict[str, list[GalleryExtension]] = {}
        self.errors: dict[str, Exception] = {}

    async def query(self, names=None, text=None, page_size=None):
        self.events.append(("query", list(names or [])))
        for name in names or []:
            if name in self.errors:
                raise self.errors[name]
        entries = []
        for name in names or []:
            entries.extend(self.results.get(name, []))
        return Page(first_page=entries, total=len(entries))


@pytest.fixture
def events():
    return []


@pytest.fixture
def management(events):
    return FakeManagement(events)


@pytest.fixture
def gallery(events):
    return FakeGallery(events)


@pytest.fixture
def report():
    """Collects reported lines; `report.lines` holds them."""
    lines = []

    def _report(line):
        lines.append(line)

    _report.lines = lines
    return _report
