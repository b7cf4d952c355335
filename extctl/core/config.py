"""
extctl Configuration Manager

Handles loading, saving, and validating configuration.
Default: the public marketplace, everything stored under ~/.extctl.
"""

import json
import os
from dataclasses import dataclass, field, asdict
from typing import Optional
from pathlib import Path


# Default config location: ~/.extctl/config.json (override with EXTCTL_HOME)
CONFIG_DIR = Path(os.environ.get("EXTCTL_HOME", Path.home() / ".extctl"))
CONFIG_FILE = CONFIG_DIR / "config.json"


@dataclass
class GalleryConfig:
    """Marketplace (registry) settings."""

    # Base URL of the gallery API; queries go to <service_url>/extensionquery
    service_url: str = "https://marketplace.visualstudio.com/_apis/public/gallery"

    # Request timeout (seconds). No retries at this layer.
    timeout: float = 30.0

    # Results requested per query page
    page_size: int = 10

    # Empty = "extctl/<version>"
    user_agent: str = ""


@dataclass
class ExtctlConfig:
    """Root configuration for extctl."""

    gallery: GalleryConfig = field(default_factory=GalleryConfig)

    # Where installed extensions are extracted
    extensions_dir: str = str(CONFIG_DIR / "extensions")

    # Per-user data and settings homes (created at startup)
    user_home: str = str(CONFIG_DIR / "user")
    settings_dir: str = str(CONFIG_DIR / "settings")

    @property
    def extensions_path(self) -> Path:
        return Path(self.extensions_dir).expanduser()

    def save(self, path: Optional[Path] = None):
        """Save configuration to JSON file."""
        config_path = path or CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "ExtctlConfig":
        """Load configuration from JSON file. Creates default if not found."""
        config_path = path or CONFIG_FILE

        if not config_path.exists():
            config = cls()
            config.save(config_path)
            return config

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)

            gallery = GalleryConfig(**data.get("gallery", {}))
            defaults = cls()

            return cls(
                gallery=gallery,
                extensions_dir=data.get("extensions_dir", defaults.extensions_dir),
                user_home=data.get("user_home", defaults.user_home),
                settings_dir=data.get("settings_dir", defaults.settings_dir),
            )
        except (json.JSONDecodeError, TypeError, KeyError, AttributeError):
            # Corrupted config: use defaults
            config = cls()
            config.save(config_path)
            return config


def ensure_dirs(config: ExtctlConfig):
    """Create the directories the host expects before any command runs."""
    for path in (config.settings_dir, config.user_home, config.extensions_dir):
        Path(path).expanduser().mkdir(parents=True, exist_ok=True)
