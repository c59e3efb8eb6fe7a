"""
Centralized settings and path configuration for the pricing engine.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


def get_package_root() -> Path:
    """Get the erp_pricing package directory."""
    return Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ('true', '1', 'yes', 'on')


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Directory holding the master data CSV files
    data_dir: Path

    # Fixed-point convention for all currency values
    currency_places: int = 2

    # Raise the final unit price to item cost when discounts go below it
    enforce_cost_floor: bool = False

    log_level: str = "INFO"

    # API bind address
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    @property
    def currency_quantum(self) -> Decimal:
        """Smallest currency unit, e.g. Decimal('0.01')."""
        return Decimal(1).scaleb(-self.currency_places)

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> 'Settings':
        """Load settings from environment variables."""
        env_dir = os.environ.get('ERP_PRICING_DATA_DIR')
        root = data_dir or (Path(env_dir) if env_dir else get_package_root() / 'data' / 'seed')

        return cls(
            data_dir=root,
            currency_places=int(os.environ.get('ERP_PRICING_CURRENCY_PLACES', 2)),
            enforce_cost_floor=_env_bool('ERP_PRICING_COST_FLOOR', False),
            log_level=os.environ.get('ERP_PRICING_LOG_LEVEL', 'INFO').upper(),
            api_host=os.environ.get('ERP_PRICING_HOST', '127.0.0.1'),
            api_port=int(os.environ.get('ERP_PRICING_PORT', 8000)),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
