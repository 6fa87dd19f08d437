"""
bootstrap/ - Configuration, process context and entry points
"""

from .config import (
    ProtoDiceConfig,
    ServerConfig,
    ChannelConfig,
    LeaderboardConfig,
    DisplayConfig,
    RecoveryConfig,
    FaultRulesConfig,
    LoggingConfig,
    load_config,
    get_config,
)

from .context import (
    ResilienceContext,
    create_context,
)

from .entrypoints import (
    setup_logging,
    cli_main,
    main,
)

__all__ = [
    # Config
    "ProtoDiceConfig",
    "ServerConfig",
    "ChannelConfig",
    "LeaderboardConfig",
    "DisplayConfig",
    "RecoveryConfig",
    "FaultRulesConfig",
    "LoggingConfig",
    "load_config",
    "get_config",
    # Context
    "ResilienceContext",
    "create_context",
    # Entry points
    "setup_logging",
    "cli_main",
    "main",
]
