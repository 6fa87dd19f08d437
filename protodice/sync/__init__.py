"""
sync/ - Server synchronization

Request/response correlation over the Socket.IO channel and HTTP, the
leaderboard loader and connection health monitoring.
"""

from .cancellation import CancellationToken

from .channel import (
    Channel,
    SocketIOChannel,
)

from .correlator import (
    ChannelTopic,
    PendingRequest,
    RefreshTargets,
    RefreshOutcome,
    RefreshResult,
    Correlator,
    GAME_STATE_TOPIC,
    LOBBY_DATA_TOPIC,
    RANKING_SORT_KEYS,
)

from .leaderboard import (
    LeaderboardResponse,
    LeaderboardLoader,
)

from .connection import (
    ConnectionStatus,
    ConnectionMonitor,
)

__all__ = [
    "CancellationToken",
    "Channel",
    "SocketIOChannel",
    "ChannelTopic",
    "PendingRequest",
    "RefreshTargets",
    "RefreshOutcome",
    "RefreshResult",
    "Correlator",
    "GAME_STATE_TOPIC",
    "LOBBY_DATA_TOPIC",
    "RANKING_SORT_KEYS",
    "LeaderboardResponse",
    "LeaderboardLoader",
    "ConnectionStatus",
    "ConnectionMonitor",
]
