"""Runtime configuration for the session server."""

from __future__ import annotations

from dataclasses import dataclass, field

from framework.env_utils import getenv_any, getenv_bool, getenv_float, getenv_int

OVERFLOW_DISCONNECT = "disconnect"
OVERFLOW_DROP_OLDEST = "drop_oldest"
OVERFLOW_POLICIES = {OVERFLOW_DISCONNECT, OVERFLOW_DROP_OLDEST}

DISCONNECT_IGNORE = "ignore"
DISCONNECT_FORFEIT = "forfeit"
DISCONNECT_POLICIES = {DISCONNECT_IGNORE, DISCONNECT_FORFEIT}

DEFAULT_ALLOWED_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


@dataclass(frozen=True)
class ServerConfig:
    """Tunables for sessions, eviction and realtime delivery."""

    idle_timeout_sec: float = 600.0
    sweep_interval_sec: float = 60.0
    send_queue_size: int = 256
    overflow_policy: str = OVERFLOW_DISCONNECT
    disconnect_policy: str = DISCONNECT_IGNORE
    max_operatives_per_team: int = 10
    auto_start: bool = False
    limit_guesses: bool = False
    allowed_origins: tuple[str, ...] = field(default=DEFAULT_ALLOWED_ORIGINS)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.overflow_policy not in OVERFLOW_POLICIES:
            raise ValueError(
                f"overflow_policy must be one of {sorted(OVERFLOW_POLICIES)}; received {self.overflow_policy!r}."
            )
        if self.disconnect_policy not in DISCONNECT_POLICIES:
            raise ValueError(
                f"disconnect_policy must be one of {sorted(DISCONNECT_POLICIES)}; received {self.disconnect_policy!r}."
            )
        if self.send_queue_size < 1:
            raise ValueError("send_queue_size must be >= 1.")
        if self.idle_timeout_sec <= 0:
            raise ValueError("idle_timeout_sec must be > 0.")
        if self.sweep_interval_sec <= 0:
            raise ValueError("sweep_interval_sec must be > 0.")
        if self.max_operatives_per_team < 1:
            raise ValueError("max_operatives_per_team must be >= 1.")

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Build configuration from CODENAMES_* environment variables (and .env)."""
        origins = getenv_any("CODENAMES_ALLOWED_ORIGINS")
        return cls(
            idle_timeout_sec=getenv_float("CODENAMES_IDLE_TIMEOUT_SEC", 600.0),
            sweep_interval_sec=getenv_float("CODENAMES_SWEEP_INTERVAL_SEC", 60.0),
            send_queue_size=getenv_int("CODENAMES_SEND_QUEUE_SIZE", 256),
            overflow_policy=(getenv_any("CODENAMES_OVERFLOW_POLICY", default=OVERFLOW_DISCONNECT) or "").lower(),
            disconnect_policy=(getenv_any("CODENAMES_DISCONNECT_POLICY", default=DISCONNECT_IGNORE) or "").lower(),
            max_operatives_per_team=getenv_int("CODENAMES_MAX_OPERATIVES_PER_TEAM", 10),
            auto_start=getenv_bool("CODENAMES_AUTO_START", False),
            limit_guesses=getenv_bool("CODENAMES_LIMIT_GUESSES", False),
            allowed_origins=(
                tuple(origin.strip() for origin in origins.split(",") if origin.strip())
                if origins
                else DEFAULT_ALLOWED_ORIGINS
            ),
            log_level=(getenv_any("CODENAMES_LOG_LEVEL", default="INFO") or "INFO").upper(),
        )
