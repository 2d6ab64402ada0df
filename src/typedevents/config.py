# src/typedevents/config.py
from __future__ import annotations

import math
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from typedevents.core import log
from typedevents.core.metrics import start_exporter


@dataclass(slots=True)
class DispatcherConfig:
    """Runtime settings derived from environment variables."""

    log_level: str = "INFO"
    log_json: bool = False
    metrics_interval: float = 5.0

    @classmethod
    def from_env(cls) -> "DispatcherConfig":
        load_dotenv()
        raw_interval = os.getenv("METRICS_INTERVAL", "5")
        try:
            interval = float(raw_interval)
        except ValueError:
            raise ValueError(f"METRICS_INTERVAL must be a number, got {raw_interval!r}") from None
        if not math.isfinite(interval) or interval <= 0:
            raise ValueError("METRICS_INTERVAL must be a finite number > 0")

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_json=os.getenv("LOG_JSON", "0") == "1",
            metrics_interval=interval,
        )


def bootstrap(cfg: DispatcherConfig | None = None, *, metrics: bool = True) -> DispatcherConfig:
    """Configure logging (and optionally the metrics exporter) from ``cfg`` or the environment."""
    cfg = cfg or DispatcherConfig.from_env()
    log.setup(cfg.log_level, cfg.log_json, force=True)
    if metrics:
        start_exporter(interval_sec=cfg.metrics_interval, json_mode=cfg.log_json)
    return cfg
