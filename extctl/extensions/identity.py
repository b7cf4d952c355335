"""
Extension identity helpers.

/ Identidad canonica de extensiones y clasificacion de argumentos.
"""

import re

# Local package files; anything else is looked up in the marketplace
PACKAGE_SUFFIX = re.compile(r"\.vsix\Z", re.IGNORECASE)


def identity_of(manifest: dict) -> str:
    """Canonical id of an extension: `<publisher>.<name>` (case-sensitive)."""
    return f"{manifest['publisher']}.{manifest['name']}"


def is_package_path(token: str) -> bool:
    """True if token names a local package file rather than a marketplace id."""
    return bool(PACKAGE_SUFFIX.search(token))
