"""
Auction configuration parameters for SealedLots.

Defines the bidding window, bid indexing and the legacy-compatibility
switches, plus storage and log locations.

Sources, later ones overriding earlier ones:
1. Dataclass defaults
2. A JSON or TOML file passed to load_config()
3. SEALEDLOTS_* environment variables (a .env file is honoured)
"""

import json
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values, find_dotenv


ENV_PREFIX = "SEALEDLOTS_"


@dataclass
class AuctionConfig:
    """Auction-wide configuration parameters"""

    # Lot lifecycle
    bidding_window: int = 10  # Seconds a lot accepts bids after creation
    first_bid_index: int = 1  # Index assigned to the first bid of a lot
    max_lot_parts: int = 256  # Maximum assets bundled in one lot

    # Legacy behaviour switches
    allow_lot_overwrite: bool = False  # Re-creating a lot id replaces the old lot
    sealed_bid_queries: bool = False  # Hide bid amounts/hashes until expiry

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    db_name: str = "auction.db"

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.log_dir = Path(self.log_dir)
        self.validate()

    def validate(self) -> None:
        """Raise ValueError on values the auction cannot run with."""
        if self.bidding_window < 1:
            raise ValueError(f"bidding_window must be >= 1 second, got {self.bidding_window}")
        if self.first_bid_index < 0:
            raise ValueError(f"first_bid_index must be >= 0, got {self.first_bid_index}")
        if self.max_lot_parts < 1:
            raise ValueError(f"max_lot_parts must be >= 1, got {self.max_lot_parts}")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name


def _coerce(name: str, raw: Any, default: Any) -> Any:
    """Convert a file/env value to the type of the field default."""
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        value = str(raw).strip().lower()
        if value in ("1", "true", "yes", "on"):
            return True
        if value in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"{name}: expected a boolean, got {raw!r}")
    if isinstance(default, int):
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"{name}: expected an integer, got {raw!r}") from None
    if isinstance(default, Path):
        return Path(raw).expanduser()
    return str(raw)


def _read_file(config_path: Path) -> Dict[str, Any]:
    if config_path.suffix == ".toml":
        with open(config_path, "rb") as fh:
            data = tomllib.load(fh)
        # Allow either a flat file or an [auction] table
        return data.get("auction", data)
    if config_path.suffix == ".json":
        return json.loads(config_path.read_text(encoding="utf-8"))
    raise ValueError(f"Unsupported config file type: {config_path.suffix}")


def _read_env() -> Dict[str, str]:
    # A .env in the working directory fills in what the environment lacks
    dotenv_path = find_dotenv(usecwd=True)
    environ: Dict[str, str] = {}
    if dotenv_path:
        environ = {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
    environ.update(os.environ)

    values = {}
    for f in fields(AuctionConfig):
        raw = environ.get(ENV_PREFIX + f.name.upper())
        if raw is not None:
            values[f.name] = raw
    return values


def load_config(config_path: Optional[str] = None, use_env: bool = True) -> AuctionConfig:
    """
    Load configuration from file and environment, on top of the defaults.

    Args:
        config_path: Optional path to a .json or .toml file
        use_env: Whether to read SEALEDLOTS_* variables (and .env)

    Returns:
        AuctionConfig instance

    Raises:
        ValueError: unknown keys, badly typed or out-of-range values
    """
    defaults = AuctionConfig()
    known = {f.name for f in fields(AuctionConfig)}
    overrides: Dict[str, Any] = {}

    if config_path:
        file_values = _read_file(Path(config_path))
        unknown = set(file_values) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        overrides.update(file_values)

    if use_env:
        overrides.update(_read_env())

    coerced = {
        name: _coerce(name, raw, getattr(defaults, name))
        for name, raw in overrides.items()
    }
    return replace(defaults, **coerced)
