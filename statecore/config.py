"""
Store configuration.

Environment Variables:
    STATECORE_HISTORY_SIZE: Number of dispatch records kept - default: 100
    STATECORE_METRICS_ENABLED: Start the Prometheus endpoint (true/false) - default: false
    STATECORE_METRICS_PORT: HTTP port for /metrics - default: 8080
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class StoreConfig:
    history_size: int = 100
    metrics_enabled: bool = False
    metrics_port: int = 8080

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "StoreConfig":
        env = os.environ if environ is None else environ
        history_size = int(env.get("STATECORE_HISTORY_SIZE", "100"))
        if history_size < 0:
            raise ValueError(f"STATECORE_HISTORY_SIZE must be >= 0, got {history_size}")
        return StoreConfig(
            history_size=history_size,
            metrics_enabled=env.get("STATECORE_METRICS_ENABLED", "false").strip().lower() in _TRUTHY,
            metrics_port=int(env.get("STATECORE_METRICS_PORT", "8080")),
        )
