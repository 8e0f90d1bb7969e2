"""Process Adapter settings read from the environment."""

import os
import logging
from typing import Optional
from dataclasses import dataclass

logger = logging.getLogger("process-adapter.config")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r} - using {default}")
        return default


@dataclass
class AdapterSettings:
    """Process-wide configuration, loaded once at startup."""
    default_shell: Optional[str] = None
    default_timeout_ms: int = 30000
    completed_capacity: int = 100
    kill_grace_ms: int = 1000
    working_directory: Optional[str] = None
    policy_path: Optional[str] = None
    log_level: str = "INFO"
    port: int = 8083

    @property
    def kill_grace_seconds(self) -> float:
        return self.kill_grace_ms / 1000

    @classmethod
    def from_env(cls) -> "AdapterSettings":
        return cls(
            default_shell=os.getenv("PROCESS_ADAPTER_DEFAULT_SHELL") or None,
            default_timeout_ms=_env_int("PROCESS_ADAPTER_DEFAULT_TIMEOUT_MS", 30000),
            completed_capacity=_env_int("PROCESS_ADAPTER_COMPLETED_CAPACITY", 100),
            kill_grace_ms=_env_int("PROCESS_ADAPTER_KILL_GRACE_MS", 1000),
            working_directory=os.getenv("PROCESS_ADAPTER_CWD") or None,
            policy_path=os.getenv("PROCESS_ADAPTER_POLICY") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            port=_env_int("PORT", 8083),
        )
