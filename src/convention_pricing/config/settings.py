"""
Centralized settings, paths and logging setup for convention pricing.
"""
import logging
import os
import sys
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

import structlog


PACKAGE_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    return Path.cwd()


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path

    # Pricing store directory (price_tiers.csv, price_discounts.csv, ...)
    data_dir: Path

    # Currency lookup table
    currencies_file: Path

    default_currency: str = 'USD'
    log_format: str = 'console'
    log_level: str = 'INFO'

    # HTTP API server
    api_host: str = '127.0.0.1'
    api_port: int = 8000
    api_reload: bool = False

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()

        data_dir = os.environ.get('CONVENTION_PRICING_DATA_DIR')
        currencies = os.environ.get('CONVENTION_PRICING_CURRENCIES_FILE')

        return cls(
            project_root=root,
            data_dir=Path(data_dir) if data_dir else root / 'data',
            currencies_file=Path(currencies) if currencies else PACKAGE_ROOT / 'data' / 'currencies.csv',
            default_currency=os.environ.get('CONVENTION_PRICING_CURRENCY', 'USD').upper(),
            log_format=os.environ.get('CONVENTION_PRICING_LOG_FORMAT', 'console'),
            log_level=os.environ.get('CONVENTION_PRICING_LOG_LEVEL', 'INFO').upper(),
            api_host=os.environ.get('CONVENTION_PRICING_HOST', '127.0.0.1'),
            api_port=int(os.environ.get('CONVENTION_PRICING_PORT', '8000')),
            api_reload=os.environ.get('CONVENTION_PRICING_RELOAD', '').lower() in ('1', 'true', 'yes'),
        )


def configure_logging(settings: Optional['Settings'] = None) -> None:
    """Route structlog output through stdlib logging with a console or JSON renderer."""
    settings = settings or get_settings()

    if settings.log_format == 'json':
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler = logging.StreamHandler()
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt='iso'),
        ],
    ))
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt='iso'),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
