"""
Auction configuration parameters.

Defines the bidding timeline, operational limits and local paths.
Values come from (lowest to highest precedence): dataclass defaults, a JSON
config file, then ``BLINDAUCTION_*`` environment variables (a ``.env`` file
in the working directory is loaded first).
"""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import TypeAdapter

ENV_PREFIX = "BLINDAUCTION_"


@dataclass
class AuctionConfig:
    """Auction-wide configuration parameters"""

    # Timeline
    bidding_duration: int = 3600  # Seconds from start until bidding closes

    # Limits
    max_bids_per_bidder: Optional[int] = None  # None = unbounded
    strict_reveal_lengths: bool = False  # Reject if EITHER reveal array length mismatches

    # Paths
    data_dir: Path = Path("~/.blindauction")
    log_dir: Path = Path("logs")

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False

    def __post_init__(self):
        if self.bidding_duration < 0:
            raise ValueError(f"bidding_duration must be >= 0, got {self.bidding_duration}")
        if self.max_bids_per_bidder is not None and self.max_bids_per_bidder < 1:
            raise ValueError(f"max_bids_per_bidder must be >= 1, got {self.max_bids_per_bidder}")
        self.data_dir = Path(self.data_dir).expanduser()
        self.log_dir = Path(self.log_dir).expanduser()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["data_dir"] = str(self.data_dir)
        data["log_dir"] = str(self.log_dir)
        return data


_adapter = TypeAdapter(AuctionConfig)


def _env_overrides() -> Dict[str, str]:
    """Collect BLINDAUCTION_<FIELD> variables that name a config field."""
    fields = AuctionConfig.__dataclass_fields__
    overrides = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in fields:
            overrides[name] = value
    return overrides


def load_config(config_path: Optional[str] = None, use_env: bool = True) -> AuctionConfig:
    """
    Load configuration from file and environment, or use defaults.

    Args:
        config_path: Optional path to a JSON config file
        use_env: Whether to apply .env / environment overrides

    Returns:
        AuctionConfig instance

    Raises:
        pydantic.ValidationError: If a value has the wrong type
    """
    data: Dict[str, Any] = {}

    if config_path:
        data.update(json.loads(Path(config_path).read_text()))

    if use_env:
        load_dotenv(find_dotenv(usecwd=True))
        data.update(_env_overrides())

    # "none" from the environment means unbounded
    if str(data.get("max_bids_per_bidder", "")).lower() in ("none", "null"):
        data["max_bids_per_bidder"] = None

    return _adapter.validate_python(data)
