# crcfind/config.py
from __future__ import annotations
from dataclasses import dataclass

from .errors import ConfigError

# Window growth with the defaults (~5s blocks):
#   try 0: 7200 blocks (~10 hours), try 1: 7200, try 2: 50400 (~3 days),
#   try 3: 352800 (~20 days), try 4: 2469600 (~4.7 months)
DEFAULT_BLOCK_RANGE = 7_200
MIN_BLOCK_RANGE     = 1
MAX_BLOCK_RANGE     = 20_000_000
RANGE_MULTIPLIER    = 7
MAX_RETRY_COUNT     = 5

INDEXER_URL_ENV = "CRCFIND_INDEXER_URL"
WS_URL_ENV      = "CRCFIND_WS_URL"


@dataclass(slots=True, frozen=True)
class RangeConfig:
    default_block_range: int = DEFAULT_BLOCK_RANGE
    min_block_range: int = MIN_BLOCK_RANGE
    max_block_range: int = MAX_BLOCK_RANGE
    range_multiplier: int = RANGE_MULTIPLIER
    max_retry_count: int = MAX_RETRY_COUNT

    def __post_init__(self) -> None:
        if self.min_block_range < 1:
            raise ConfigError(f"min_block_range must be >= 1, got {self.min_block_range}")
        if not self.min_block_range <= self.default_block_range <= self.max_block_range:
            raise ConfigError(
                f"expected min_block_range <= default_block_range <= max_block_range, got "
                f"{self.min_block_range} / {self.default_block_range} / {self.max_block_range}"
            )
        if self.range_multiplier < 1:
            raise ConfigError(f"range_multiplier must be >= 1, got {self.range_multiplier}")
        if self.max_retry_count < 1:
            raise ConfigError(f"max_retry_count must be >= 1, got {self.max_retry_count}")

    def clamp(self, range_size: int) -> int:
        return max(self.min_block_range, min(range_size, self.max_block_range))
