"""
Centralized settings and path configuration for the quote pricing package.
"""
import logging
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def get_package_root() -> Path:
    return Path(__file__).resolve().parent.parent


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path

    # Directory of per-service pricing JSON files
    services_dir: Path

    default_currency: str = "GBP"
    config_version: str = "v1"
    log_level: str = "INFO"

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and QUOTE_PRICING_* environment variables."""
        root = project_root or get_project_root()

        services_dir = os.environ.get('QUOTE_PRICING_SERVICES_DIR')

        return cls(
            project_root=root,
            services_dir=Path(services_dir) if services_dir else get_package_root() / 'data' / 'services',
            default_currency=os.environ.get('QUOTE_PRICING_CURRENCY', 'GBP').upper(),
            config_version=os.environ.get('QUOTE_PRICING_CONFIG_VERSION', 'v1'),
            log_level=os.environ.get('QUOTE_PRICING_LOG_LEVEL', 'INFO').upper(),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def configure_logging(settings: Optional[Settings] = None):
    """Set up root logging for scripts and the API process."""
    settings = settings or get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO), format=LOG_FORMAT)
