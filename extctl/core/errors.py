"""
extctl error taxonomy.

Every failure a command can end with derives from ExtctlError, so the CLI
and the MCP server only need one except clause. "Already installed" is not
here: it is a successful outcome.

/ Taxonomia de errores de extctl.
"""

from typing import Optional

USE_ID_HINT = (
    "Make sure you use the full extension ID, including the publisher, "
    "eg: ms-vscode.csharp"
)


class ExtctlError(Exception):
    """Base class for every error surfaced to the user."""


class NotFoundError(ExtctlError):
    """The marketplace returned no candidate for a requested name."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Extension '{identifier}' not found.\n{USE_ID_HINT}")


class NotInstalledError(ExtctlError):
    """An uninstall target is not in the installed set."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Extension '{identifier}' is not installed.\n{USE_ID_HINT}")


class TransportError(ExtctlError):
    """
    The marketplace request failed.

    response_text holds the body when the server answered (HTTP error status),
    None for connection failures and timeouts.
    """

    def __init__(self, message: str, response_text: Optional[str] = None):
        super().__init__(message)
        self.response_text = response_text


class GalleryError(ExtctlError):
    """The marketplace rejected a query and explained why."""


class InstallError(ExtctlError):
    """The management service could not install or uninstall a package."""
