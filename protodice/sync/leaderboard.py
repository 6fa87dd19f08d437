"""
sync/leaderboard.py - Leaderboard loading over HTTP with a single retry

The only automatic retry in the package: a failed fetch is retried once
after a delay, and only if no data has arrived by then. Cancellation is
silent.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional
import asyncio
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors.taxonomy import RequestCancelled, RequestError
from .cancellation import CancellationToken
from .correlator import Correlator, RANKING_SORT_KEYS

logger = logging.getLogger("sync.leaderboard")


LOADING_MESSAGE = "Loading..."
FAILED_MESSAGE = "Failed to load leaderboard.\nPlease try again."


class LeaderboardResponse(BaseModel):
    """Body of GET /leaderboard."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    top_players: List[Dict[str, Any]] = Field(default_factory=list, alias="topPlayers")
    player_rank: Optional[Dict[str, Any]] = Field(None, alias="playerRank")

    @field_validator("top_players", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class LeaderboardLoader:
    """
    Loads the leaderboard for a scene.

    Status text goes to ``on_status``; parsed data to ``on_data``.
    """

    def __init__(
        self,
        correlator: Correlator,
        base_url: Optional[str] = None,
        retry_delay_ms: int = 3000,
        max_retries: int = 1,
        on_status: Optional[Callable[[str], Any]] = None,
        on_data: Optional[Callable[[LeaderboardResponse], Any]] = None,
    ):
        self.correlator = correlator
        self.base_url = (base_url if base_url is not None else correlator.base_url).rstrip("/")
        self.retry_delay_seconds = retry_delay_ms / 1000
        self.max_retries = max_retries
        self.on_status = on_status
        self.on_data = on_data

        self.sort_by = "total"
        self.data: Optional[LeaderboardResponse] = None
        self.retry_count = 0
        self.attempts = 0
        self.status: Optional[str] = None

        self._loading = False
        self._token: Optional[CancellationToken] = None
        self._retry_task: Optional[asyncio.Task] = None

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def has_data(self) -> bool:
        return self.data is not None and bool(self.data.top_players)

    def url_for(self, sort_by: str) -> str:
        return f"{self.base_url}/leaderboard?sortBy={sort_by}"

    async def load(self, sort_by: str = "total") -> Optional[LeaderboardResponse]:
        """Start a fresh load. Returns None on failure, cancellation or skip."""
        if self._loading:
            logger.info("Leaderboard already loading, skipping")
            return None
        if sort_by not in RANKING_SORT_KEYS:
            logger.warning(f"Unknown sort key {sort_by!r}, using 'total'")
            sort_by = "total"

        self._cancel_retry()
        self.retry_count = 0
        self.sort_by = sort_by
        self._token = CancellationToken()
        return await self._fetch(self._token)

    async def _fetch(self, token: CancellationToken) -> Optional[LeaderboardResponse]:
        self._loading = True
        self.attempts += 1
        self._publish(LOADING_MESSAGE)
        try:
            body = await self.correlator.request_resource(self.url_for(self.sort_by), cancel_token=token)
            response = LeaderboardResponse.model_validate(body)
        except RequestCancelled:
            logger.info("Leaderboard fetch cancelled")
            return None
        except (RequestError, ValidationError) as e:
            logger.error(f"Error fetching leaderboard: {e}")
            if self.retry_count < self.max_retries:
                self.retry_count += 1
                self._schedule_retry(token)
            else:
                self._publish(FAILED_MESSAGE)
            return None
        finally:
            self._loading = False

        self.data = response
        logger.info(f"Received leaderboard ({len(response.top_players)} players)")
        if self.on_data is not None:
            try:
                self.on_data(response)
            except Exception as e:
                logger.warning(f"Leaderboard data callback failed: {e}")
        return response

    def _schedule_retry(self, token: CancellationToken) -> None:
        self._retry_task = asyncio.ensure_future(self._retry_after_delay(token))

    async def _retry_after_delay(self, token: CancellationToken) -> None:
        await asyncio.sleep(self.retry_delay_seconds)
        if token.cancelled or self.has_data:
            return
        logger.warning("Leaderboard fetch failed, retrying")
        await self._fetch(token)

    def _cancel_retry(self) -> None:
        task = self._retry_task
        self._retry_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def cancel(self) -> None:
        """Abort the in-flight request and any pending retry."""
        if self._token is not None:
            self._token.cancel("leaderboard closed")
        self._cancel_retry()

    async def settled(self) -> None:
        """Wait for a scheduled retry (if any) to finish."""
        while self._retry_task is not None and not self._retry_task.done():
            task = self._retry_task
            try:
                await task
            except asyncio.CancelledError:
                if task is self._retry_task:
                    raise
                return

    def _publish(self, status: str) -> None:
        self.status = status
        if self.on_status is None:
            return
        try:
            self.on_status(status)
        except Exception as e:
            logger.warning(f"Leaderboard status callback failed: {e}")
