from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")

_DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@dataclass(frozen=True)
class DataConfig:
    """
    Locations of the order/menu tables and of the interaction log.

    An empty ``interaction_log_path`` keeps interactions in memory only.
    """

    data_dir: Path = Path(os.getenv("MENUREC_DATA_DIR", str(_DEFAULT_DATA_DIR)))
    interaction_log_path: str = os.getenv("MENUREC_INTERACTION_LOG", "")

    @property
    def interaction_log(self) -> Path | None:
        return Path(self.interaction_log_path) if self.interaction_log_path else None


DEFAULT_DATA_CONFIG = DataConfig()
