"""Runtime configuration, built from the command line."""

from __future__ import annotations

from dataclasses import dataclass, field

from .datafeed.bootstrap import BULLET_URL, MAX_ATTEMPTS, RETRY_DELAY_SEC
from .datafeed.orderbook import DEFAULT_DEPTH

DEFAULT_SYMBOL = "ETHUSDTM"
TOPIC_TEMPLATE = "/contractMarket/level2Depth5:{symbol}"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class FeedConfig:
    symbol: str = DEFAULT_SYMBOL
    topic: str = ""
    depth: int = DEFAULT_DEPTH
    bootstrap_url: str = BULLET_URL
    bootstrap_attempts: int = MAX_ATTEMPTS
    bootstrap_delay: float = RETRY_DELAY_SEC
    read_timeout: float | None = None
    reconnect: bool = False
    reconnect_delay: float = 1.0
    log_level: str = "INFO"
    tui: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        if not self.symbol:
            raise ValueError("symbol must not be empty")
        if not self.topic:
            object.__setattr__(self, "topic", TOPIC_TEMPLATE.format(symbol=self.symbol))
        if self.depth < 1:
            raise ValueError(f"depth must be >= 1, got {self.depth}")
        if self.bootstrap_attempts < 1:
            raise ValueError(f"bootstrap_attempts must be >= 1, got {self.bootstrap_attempts}")
        if self.bootstrap_delay < 0 or self.reconnect_delay < 0:
            raise ValueError("delays must be >= 0")
        if self.read_timeout is not None and self.read_timeout <= 0:
            raise ValueError(f"read_timeout must be > 0, got {self.read_timeout}")
        level = self.log_level.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"invalid log level: {self.log_level}")
        object.__setattr__(self, "log_level", level)
