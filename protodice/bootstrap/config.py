"""
bootstrap/config.py - Client resilience configuration

Provides configuration loading from files, environment variables, and defaults.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from pathlib import Path
import os
import json
import logging

from ..errors.classifier import DEFAULT_RESOURCE_PROBE

logger = logging.getLogger("bootstrap.config")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class ServerConfig:
    """Game server endpoints."""

    base_url: str = "https://api.protodice.net"
    fallback_urls: List[str] = field(default_factory=lambda: ["https://protodice.vercel.app"])

    @classmethod
    def from_env(cls) -> "ServerConfig":
        fallbacks = os.getenv("PROTODICE_SERVER_FALLBACKS", "https://protodice.vercel.app")
        return cls(
            base_url=os.getenv("PROTODICE_SERVER_URL", "https://api.protodice.net").rstrip("/"),
            fallback_urls=[u.strip() for u in fallbacks.split(",") if u.strip()],
        )

    @property
    def candidates(self) -> List[str]:
        urls = [self.base_url] + list(self.fallback_urls)
        return list(dict.fromkeys(u.rstrip("/") for u in urls))


@dataclass
class ChannelConfig:
    """Socket channel and request correlation."""

    request_timeout_ms: int = 5000
    error_events: List[str] = field(default_factory=lambda: ["error", "connect_error", "disconnect"])
    connect_timeout_ms: int = 15000
    reconnection_attempts: int = 15
    reconnection_delay_ms: int = 300
    reconnection_delay_max_ms: int = 8000
    randomization_factor: float = 0.5
    max_connection_retries: int = 15
    http_timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> "ChannelConfig":
        events = os.getenv("PROTODICE_CHANNEL_ERROR_EVENTS", "error,connect_error,disconnect")
        return cls(
            request_timeout_ms=int(os.getenv("PROTODICE_REQUEST_TIMEOUT_MS", "5000")),
            error_events=[e.strip() for e in events.split(",") if e.strip()],
            connect_timeout_ms=int(os.getenv("PROTODICE_CONNECT_TIMEOUT_MS", "15000")),
            reconnection_attempts=int(os.getenv("PROTODICE_RECONNECT_ATTEMPTS", "15")),
            reconnection_delay_ms=int(os.getenv("PROTODICE_RECONNECT_DELAY_MS", "300")),
            reconnection_delay_max_ms=int(os.getenv("PROTODICE_RECONNECT_DELAY_MAX_MS", "8000")),
            randomization_factor=float(os.getenv("PROTODICE_RECONNECT_JITTER", "0.5")),
            max_connection_retries=int(os.getenv("PROTODICE_MAX_CONNECTION_RETRIES", "15")),
            http_timeout_seconds=float(os.getenv("PROTODICE_HTTP_TIMEOUT", "10.0")),
        )


@dataclass
class LeaderboardConfig:
    retry_delay_ms: int = 3000
    max_retries: int = 1

    @classmethod
    def from_env(cls) -> "LeaderboardConfig":
        return cls(
            retry_delay_ms=int(os.getenv("PROTODICE_LEADERBOARD_RETRY_DELAY_MS", "3000")),
            max_retries=int(os.getenv("PROTODICE_LEADERBOARD_MAX_RETRIES", "1")),
        )


@dataclass
class DisplayConfig:
    """Fault presentation queue and panel."""

    queue_cap: int = 25
    cooldown_ms: int = 600
    readiness_poll_ms: int = 200
    message_cap: int = 300
    details_cap: int = 1000

    @classmethod
    def from_env(cls) -> "DisplayConfig":
        return cls(
            queue_cap=int(os.getenv("PROTODICE_DISPLAY_QUEUE_CAP", "25")),
            cooldown_ms=int(os.getenv("PROTODICE_DISPLAY_COOLDOWN_MS", "600")),
            readiness_poll_ms=int(os.getenv("PROTODICE_DISPLAY_POLL_MS", "200")),
            message_cap=int(os.getenv("PROTODICE_DISPLAY_MESSAGE_CAP", "300")),
            details_cap=int(os.getenv("PROTODICE_DISPLAY_DETAILS_CAP", "1000")),
        )


@dataclass
class RecoveryConfig:
    """Scene recovery and connection recovery."""

    settle_delay_ms: int = 250
    default_tile_size: int = 48
    placeholder_ratio: float = 0.8
    health_check_timeout_ms: int = 5000
    max_recovery_attempts: int = 5
    recovery_wait_ms: int = 3000

    @classmethod
    def from_env(cls) -> "RecoveryConfig":
        return cls(
            settle_delay_ms=int(os.getenv("PROTODICE_RECOVERY_SETTLE_MS", "250")),
            default_tile_size=int(os.getenv("PROTODICE_TILE_SIZE", "48")),
            placeholder_ratio=float(os.getenv("PROTODICE_PLACEHOLDER_RATIO", "0.8")),
            health_check_timeout_ms=int(os.getenv("PROTODICE_HEALTH_TIMEOUT_MS", "5000")),
            max_recovery_attempts=int(os.getenv("PROTODICE_MAX_RECOVERY_ATTEMPTS", "5")),
            recovery_wait_ms=int(os.getenv("PROTODICE_RECOVERY_WAIT_MS", "3000")),
        )


@dataclass
class FaultRulesConfig:
    """Benign-fault table and resource probe."""

    rules_file: Optional[str] = None
    resource_probe_pattern: str = DEFAULT_RESOURCE_PROBE

    @classmethod
    def from_env(cls) -> "FaultRulesConfig":
        return cls(
            rules_file=os.getenv("PROTODICE_FAULT_RULES_FILE"),
            resource_probe_pattern=os.getenv("PROTODICE_RESOURCE_PROBE", DEFAULT_RESOURCE_PROBE),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls(
            level=os.getenv("PROTODICE_LOG_LEVEL", "INFO"),
            format=os.getenv("PROTODICE_LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_file=os.getenv("PROTODICE_LOG_FILE"),
            json_logs=_env_bool("PROTODICE_JSON_LOGS", "false"),
        )


@dataclass
class ProtoDiceConfig:
    """Root configuration for the resilience subsystem."""

    environment: str = "production"
    debug: bool = False

    server: ServerConfig = field(default_factory=ServerConfig)
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    leaderboard: LeaderboardConfig = field(default_factory=LeaderboardConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    recovery: RecoveryConfig = field(default_factory=RecoveryConfig)
    fault_rules: FaultRulesConfig = field(default_factory=FaultRulesConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "ProtoDiceConfig":
        """Create configuration from environment variables."""
        return cls(
            environment=os.getenv("PROTODICE_ENVIRONMENT", "production"),
            debug=_env_bool("PROTODICE_DEBUG", "false"),
            server=ServerConfig.from_env(),
            channel=ChannelConfig.from_env(),
            leaderboard=LeaderboardConfig.from_env(),
            display=DisplayConfig.from_env(),
            recovery=RecoveryConfig.from_env(),
            fault_rules=FaultRulesConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def from_file(cls, filepath: str) -> "ProtoDiceConfig":
        """Load configuration from JSON file."""
        path = Path(filepath)
        if not path.exists():
            logger.warning(f"Config file not found: {filepath}, using defaults")
            return cls.from_env()

        with open(path) as f:
            data = json.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "ProtoDiceConfig":
        """Environment first, then file values on top."""
        config = cls.from_env()

        if "environment" in data:
            config.environment = data["environment"]
        if "debug" in data:
            config.debug = data["debug"]

        for section in ("server", "channel", "leaderboard", "display", "recovery", "fault_rules", "logging"):
            if section not in data:
                continue
            target = getattr(config, section)
            for key, value in data[section].items():
                if hasattr(target, key):
                    setattr(target, key, value)
                else:
                    logger.warning(f"Unknown config key: {section}.{key}")

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Serialize config to dictionary."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "server": {
                "base_url": self.server.base_url,
                "fallback_urls": list(self.server.fallback_urls),
            },
            "channel": {
                "request_timeout_ms": self.channel.request_timeout_ms,
                "error_events": list(self.channel.error_events),
                "max_connection_retries": self.channel.max_connection_retries,
            },
            "leaderboard": {
                "retry_delay_ms": self.leaderboard.retry_delay_ms,
                "max_retries": self.leaderboard.max_retries,
            },
            "display": {
                "queue_cap": self.display.queue_cap,
                "cooldown_ms": self.display.cooldown_ms,
            },
            "recovery": {
                "settle_delay_ms": self.recovery.settle_delay_ms,
                "max_recovery_attempts": self.recovery.max_recovery_attempts,
            },
            "fault_rules": {
                "rules_file": self.fault_rules.rules_file,
            },
        }


# Global config instance
_config: Optional[ProtoDiceConfig] = None


def load_config(filepath: str = None) -> ProtoDiceConfig:
    """
    Load configuration from file or environment.

    Args:
        filepath: Optional path to JSON config file

    Returns:
        ProtoDiceConfig instance
    """
    global _config

    if filepath:
        _config = ProtoDiceConfig.from_file(filepath)
    else:
        default_paths = [
            "./protodice.json",
            "./config/protodice.json",
            os.path.expanduser("~/.protodice/config.json"),
        ]

        for path in default_paths:
            if Path(path).exists():
                logger.info(f"Loading config from: {path}")
                _config = ProtoDiceConfig.from_file(path)
                return _config

        _config = ProtoDiceConfig.from_env()

    logger.info(f"Configuration loaded: environment={_config.environment}")
    return _config


def get_config() -> ProtoDiceConfig:
    """Get current configuration, loading if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
