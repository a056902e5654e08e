"""Connection settings for ``collector submit``."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from settings import get_settings

DEFAULT_CONNECT_TIMEOUT = 5.0

_CONNECT_TIMEOUT_ENV = "COLLECTOR_CONNECT_TIMEOUT"


@dataclass(frozen=True)
class CLIConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT

    @property
    def address(self) -> Tuple[str, int]:
        return self.host, self.port


def _connect_timeout_from_env() -> float:
    raw = (os.getenv(_CONNECT_TIMEOUT_ENV) or "").strip()
    try:
        timeout = float(raw)
    except ValueError:
        return DEFAULT_CONNECT_TIMEOUT
    if not math.isfinite(timeout) or timeout <= 0:
        return DEFAULT_CONNECT_TIMEOUT
    return timeout


def load_config(
    host: Optional[str] = None,
    port: Optional[int] = None,
    connect_timeout: Optional[float] = None,
) -> CLIConfig:
    """Merge command line overrides with the server's ``COLLECTOR_*`` settings.

    The client connects to the same host and port the server would bind to
    when neither is given explicitly.
    """
    server = get_settings()
    return CLIConfig(
        host=host or server.host,
        port=server.port if port is None else port,
        connect_timeout=(
            _connect_timeout_from_env() if connect_timeout is None else connect_timeout
        ),
    )
