"""
sync/correlator.py - Request/response correlation over a duplex channel

Turns fire-and-forget channel events and HTTP calls into awaitable
operations. Every channel request:
1. checks its preconditions (channel connected, valid key, known topic)
2. registers its response and channel-error listeners
3. emits the request
4. settles exactly once: matching payload, ChannelError or RequestTimeout
5. removes every listener it registered, whichever way it settled

Correlation is by a field embedded in the response payload, not by a
transport-level request id. Nothing here retries.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
import asyncio
import inspect
import logging

import httpx

from ..errors.taxonomy import (
    ChannelError,
    ChannelUnavailableError,
    HttpStatusError,
    InvalidRequestError,
    RequestCancelled,
    RequestError,
    RequestTimeout,
)
from .cancellation import CancellationToken

logger = logging.getLogger("sync.correlator")


DEFAULT_ERROR_EVENTS = ("error", "connect_error", "disconnect")

RANKING_SORT_KEYS = ("total", "highest", "combos", "wins", "best")


# =============================================================================
# TOPICS
# =============================================================================

@dataclass(frozen=True)
class ChannelTopic:
    """A paired request/response event with its correlation field."""

    name: str
    request_event: str
    response_event: str
    match_field: str
    build_payload: Callable[[str], Any]


GAME_STATE_TOPIC = ChannelTopic(
    name="game-state-refresh",
    request_event="request-game-state",
    response_event="game-state",
    match_field="room",
    build_payload=lambda code: {"code": code},
)

LOBBY_DATA_TOPIC = ChannelTopic(
    name="lobby-data-refresh",
    request_event="request-lobby-data",
    response_event="lobby-data",
    match_field="code",
    build_payload=lambda code: code,
)


# =============================================================================
# PENDING REQUEST
# =============================================================================

@dataclass
class PendingRequest:
    """One in-flight channel request. Settles once, then releases its listeners."""

    operation: str
    future: asyncio.Future
    deadline: float
    cancel_handles: List[Callable[[], None]] = field(default_factory=list)

    @property
    def settled(self) -> bool:
        return self.future.done()

    def resolve(self, payload: Any) -> bool:
        if self.future.done():
            return False
        self.future.set_result(payload)
        return True

    def fail(self, error: BaseException) -> bool:
        if self.future.done():
            return False
        self.future.set_exception(error)
        return True

    def release(self) -> None:
        handles, self.cancel_handles = self.cancel_handles, []
        for handle in handles:
            try:
                handle()
            except Exception as e:
                logger.warning(f"Failed to release listener for {self.operation}: {e}")


# =============================================================================
# FULL REFRESH
# =============================================================================

@dataclass
class RefreshTargets:
    """Which sub-operations a full refresh should issue."""

    game_code: Optional[str] = None
    lobby_code: Optional[str] = None
    ranking_sort: Optional[str] = None

    def is_empty(self) -> bool:
        return self.game_code is None and self.lobby_code is None and self.ranking_sort is None


@dataclass
class RefreshOutcome:
    target: str
    payload: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "ok": self.ok,
            "payload": self.payload,
            "error": str(self.error) if self.error else None,
            "error_type": type(self.error).__name__ if self.error else None,
        }


@dataclass
class RefreshResult:
    """Per-target outcome of a full refresh. One failure never hides another's success."""

    outcomes: Dict[str, RefreshOutcome] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes.values())

    @property
    def failed(self) -> List[str]:
        return [name for name, o in self.outcomes.items() if not o.ok]

    def get(self, target: str) -> Optional[RefreshOutcome]:
        return self.outcomes.get(target)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "outcomes": {name: o.to_dict() for name, o in self.outcomes.items()},
        }


# =============================================================================
# CORRELATOR
# =============================================================================

class Correlator:
    """
    Awaitable request/response operations over a channel and HTTP.

    The channel and HTTP client are observed, not owned, unless the
    correlator created the HTTP client itself.
    """

    def __init__(
        self,
        channel: Any = None,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = "",
        request_timeout_ms: int = 5000,
        error_events: Sequence[str] = DEFAULT_ERROR_EVENTS,
        http_timeout_seconds: float = 10.0,
    ):
        self.channel = channel
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = request_timeout_ms / 1000
        self.error_events: Tuple[str, ...] = tuple(error_events)
        self.http_timeout_seconds = http_timeout_seconds

        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._topics: Dict[str, ChannelTopic] = {}
        for topic in (GAME_STATE_TOPIC, LOBBY_DATA_TOPIC):
            self.register_topic(topic)

    # ---- configuration ----

    def bind_channel(self, channel: Any) -> None:
        self.channel = channel

    def register_topic(self, topic: ChannelTopic) -> None:
        self._topics[topic.name] = topic

    @property
    def topics(self) -> List[str]:
        return list(self._topics)

    def listener_count(self, event: str) -> int:
        counter = getattr(self.channel, "listener_count", None)
        if counter is None:
            return 0
        return counter(event)

    # ---- channel requests ----

    async def request_channel_state(self, topic: str, match_key: str) -> Any:
        """
        Request a fresh snapshot for ``topic`` and wait for the payload whose
        match field equals ``match_key``.

        Raises:
            ChannelUnavailableError: channel missing or disconnected
            InvalidRequestError: empty key or unknown topic
            RequestTimeout: no matching payload in time
            ChannelError: the channel reported an error while waiting
        """
        self._require_channel(topic)
        if not isinstance(match_key, str) or not match_key:
            raise InvalidRequestError(f"Invalid key for {topic}: {match_key!r}", operation=topic)
        route = self._topics.get(topic)
        if route is None:
            raise InvalidRequestError(f"Unknown topic: {topic}", operation=topic)

        def on_response(pending: PendingRequest, data: Any) -> None:
            if isinstance(data, dict) and data.get(route.match_field) == match_key:
                pending.resolve(data)
            else:
                logger.debug(f"Ignoring {route.response_event} payload not matching {match_key}")

        logger.info(f"Requesting {topic} for {match_key}")
        return await self._exchange(
            operation=topic,
            request_event=route.request_event,
            payload=route.build_payload(match_key),
            responses={route.response_event: on_response},
        )

    async def request_ranking(self, sort_key: str = "total") -> Any:
        """Request the leaderboard over the channel, sorted by ``sort_key``."""
        operation = "ranking"
        self._require_channel(operation)
        if sort_key not in RANKING_SORT_KEYS:
            raise InvalidRequestError(f"Invalid sort key: {sort_key!r}", operation=operation)

        def on_data(pending: PendingRequest, data: Any) -> None:
            pending.resolve(data)

        def on_error(pending: PendingRequest, data: Any) -> None:
            message = data.get("message") if isinstance(data, dict) else data
            pending.fail(ChannelError(
                str(message or "Leaderboard error"),
                operation=operation,
                event="leaderboard-error",
                payload=data,
            ))

        logger.info(f"Requesting ranking (sortBy={sort_key})")
        return await self._exchange(
            operation=operation,
            request_event="get-leaderboard",
            payload={"sortBy": sort_key},
            responses={"leaderboard-data": on_data, "leaderboard-error": on_error},
        )

    def _require_channel(self, operation: str) -> Any:
        channel = self.channel
        if channel is None or not channel.connected:
            raise ChannelUnavailableError(operation=operation)
        return channel

    async def _exchange(
        self,
        operation: str,
        request_event: str,
        payload: Any,
        responses: Dict[str, Callable[[PendingRequest, Any], None]],
    ) -> Any:
        channel = self._require_channel(operation)
        loop = asyncio.get_running_loop()
        pending = PendingRequest(
            operation=operation,
            future=loop.create_future(),
            deadline=loop.time() + self.timeout_seconds,
        )

        try:
            for event, on_payload in responses.items():
                self._listen(channel, pending, event, _payload_handler(pending, on_payload))
            for event in self.error_events:
                if event not in responses:
                    self._listen(channel, pending, event, self._error_handler(pending, event))

            try:
                sent = channel.emit(request_event, payload)
                if inspect.isawaitable(sent):
                    await sent
            except Exception as e:
                raise ChannelError(
                    f"Failed to emit '{request_event}': {e}",
                    operation=operation,
                    event=request_event,
                ) from e

            remaining = max(0.0, pending.deadline - loop.time())
            try:
                return await asyncio.wait_for(pending.future, timeout=remaining)
            except asyncio.TimeoutError:
                raise RequestTimeout(operation, self.timeout_seconds) from None
        finally:
            pending.release()

    def _listen(self, channel: Any, pending: PendingRequest, event: str, handler: Callable[..., None]) -> None:
        channel.on(event, handler)
        pending.cancel_handles.append(lambda: channel.off(event, handler))

    def _error_handler(self, pending: PendingRequest, event: str) -> Callable[..., None]:
        def on_error(*args: Any) -> None:
            data = args[0] if args else None
            if pending.fail(ChannelError(
                f"Channel reported '{event}'",
                operation=pending.operation,
                event=event,
                payload=data,
            )):
                logger.warning(f"{pending.operation} failed on channel event '{event}'")
        return on_error

    # ---- HTTP ----

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.http_timeout_seconds,
            )
            self._owns_http_client = True
        return self._http_client

    async def request_resource(self, url: str, cancel_token: Optional[CancellationToken] = None) -> Any:
        """
        GET ``url`` and return the decoded JSON body.

        Firing ``cancel_token`` raises RequestCancelled at once; the HTTP call
        itself keeps running and its result is discarded.
        """
        operation = f"GET {url}"
        if cancel_token is not None and cancel_token.cancelled:
            raise RequestCancelled(operation)

        client = self._get_http_client()
        fetch = asyncio.ensure_future(client.get(url))
        try:
            if cancel_token is not None:
                waiter = asyncio.ensure_future(cancel_token.wait())
                try:
                    await asyncio.wait({fetch, waiter}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    waiter.cancel()
                if cancel_token.cancelled:
                    logger.debug(f"{operation} cancelled")
                    raise RequestCancelled(operation)
            response = await fetch
        except httpx.TimeoutException as e:
            raise RequestTimeout(operation, self.http_timeout_seconds) from e
        except httpx.HTTPError as e:
            raise ChannelError(f"Transport error: {e}", operation=operation) from e
        finally:
            fetch.add_done_callback(_discard_result)

        if not response.is_success:
            raise HttpStatusError(response.status_code, response.reason_phrase, operation=operation)
        try:
            return response.json()
        except ValueError as e:
            raise RequestError(f"Invalid JSON response: {e}", operation=operation, recoverable=False) from e

    # ---- composite ----

    async def full_refresh(self, targets: RefreshTargets) -> RefreshResult:
        """Issue every requested sub-operation concurrently and report each outcome."""
        calls: Dict[str, Awaitable[Any]] = {}
        if targets.game_code is not None:
            calls["game_state"] = self.request_channel_state(GAME_STATE_TOPIC.name, targets.game_code)
        if targets.lobby_code is not None:
            calls["lobby_data"] = self.request_channel_state(LOBBY_DATA_TOPIC.name, targets.lobby_code)
        if targets.ranking_sort is not None:
            calls["ranking"] = self.request_ranking(targets.ranking_sort)

        result = RefreshResult()
        if not calls:
            return result

        logger.info(f"Starting full refresh: {', '.join(calls)}")
        settled = await asyncio.gather(*calls.values(), return_exceptions=True)
        for name, value in zip(calls, settled):
            if isinstance(value, BaseException):
                logger.warning(f"Failed to refresh {name}: {value}")
                result.outcomes[name] = RefreshOutcome(target=name, error=value)
            else:
                result.outcomes[name] = RefreshOutcome(target=name, payload=value)

        logger.info(f"Full refresh complete ({len(result.failed)} failed)")
        return result

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None


def _payload_handler(
    pending: PendingRequest,
    on_payload: Callable[[PendingRequest, Any], None],
) -> Callable[..., None]:
    def handler(*args: Any) -> None:
        if pending.settled:
            return
        on_payload(pending, args[0] if args else None)
    return handler


def _discard_result(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()
