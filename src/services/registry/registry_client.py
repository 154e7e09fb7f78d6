"""HTTP client for the rendezvous service"""

import asyncio
import secrets
from typing import Callable, List, Optional

import httpx

from src.infrastructure.config import get_config
from src.infrastructure.logging.logging_config import get_logger
from src.shared.resilience.exceptions import MaxRetriesExceededError
from src.shared.resilience.retry import BackoffStrategy, with_retry

logger = get_logger("registry_client")

SESSION_ID_ALPHABET = (
    "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-+=!@#$%^&*()_"
)

# Timeouts and connect failures both derive from TransportError
TRANSIENT_ERRORS = (httpx.TransportError,)


def generate_session_id(length: int = 24) -> str:
    """Create a random session identifier for one client run."""
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(length))


class PeerRegistryClient:
    """HTTP client for registering with and querying the rendezvous service"""

    def __init__(
        self,
        registry_endpoint: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            registry_endpoint: Base URL of the rendezvous service. Read from
                configuration when omitted.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport, mainly for tests.
        """
        if registry_endpoint is None:
            registry_endpoint = str(get_config().config.registry_endpoint)
        self.registry_endpoint = registry_endpoint.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        logger.info(f"Registry client initialized with endpoint: {self.registry_endpoint}")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.registry_endpoint,
            timeout=self.timeout,
            transport=self._transport,
        )

    @with_retry(
        max_attempts=3,
        backoff=BackoffStrategy.EXPONENTIAL,
        base_delay=0.5,
        max_delay=5.0,
        retryable_exceptions=TRANSIENT_ERRORS,
    )
    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with self._client() as client:
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
            return response

    async def register(self, session_id: str, address: str) -> bool:
        """Register or refresh ``address`` under ``session_id``"""
        try:
            await self._request(
                "POST", "/", json={"address": address, "sessionId": session_id}
            )
            logger.info(f"Registered {address} as session {session_id}")
            return True

        except MaxRetriesExceededError as e:
            logger.error(
                f"Registry unreachable while registering {session_id}: {e.last_error}"
            )
            return False
        except httpx.HTTPStatusError as e:
            logger.error(
                f"HTTP error registering {session_id}: "
                f"{e.response.status_code} {e.response.text}"
            )
            return False

    async def list_peers(self) -> List[str]:
        """Fetch the live peer addresses"""
        try:
            response = await self._request("GET", "/")
            peers = response.json().get("peers", [])
            logger.debug(f"Fetched {len(peers)} peers from registry")
            return [p for p in peers if isinstance(p, str)]

        except MaxRetriesExceededError as e:
            logger.error(f"Registry unreachable while listing peers: {e.last_error}")
            return []
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error listing peers: {e.response.status_code}")
            return []
        except ValueError as e:
            logger.error(f"Malformed peer list from registry: {e}")
            return []

    async def health_check(self) -> bool:
        """Check if the rendezvous service is healthy and reachable"""
        try:
            response = await self._request("GET", "/health")
            return response.json().get("status") == "healthy"
        except (MaxRetriesExceededError, httpx.HTTPStatusError, ValueError) as e:
            logger.warning(f"Registry health check failed: {e}")
            return False


class PeerAnnouncer:
    """Keep one session registered and its view of peers fresh.

    Each round re-registers the address (resetting its TTL) and then
    refreshes ``peers``. The interval must stay below the registry TTL or
    the entry lapses between rounds. ``on_round`` is called with the
    announcer and the registration result after every round run by the
    background loop.
    """

    def __init__(
        self,
        client: PeerRegistryClient,
        session_id: str,
        address: str,
        interval_seconds: float = 10.0,
        on_round: Optional[Callable[["PeerAnnouncer", bool], None]] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.client = client
        self.session_id = session_id
        self.address = address
        self.interval_seconds = interval_seconds
        self.on_round = on_round
        self.peers: List[str] = []
        self.rounds = 0
        self._task: Optional[asyncio.Task[None]] = None

    async def announce_once(self) -> bool:
        """Register once and refresh the peer list. Returns registration success."""
        registered = await self.client.register(self.session_id, self.address)
        if not registered:
            logger.warning(f"Announcement failed for session {self.session_id}")
        self.peers = await self.client.list_peers()
        return registered

    async def _announce_loop(self) -> None:
        while True:
            try:
                registered = await self.announce_once()
                self.rounds += 1
                if self.on_round is not None:
                    self.on_round(self, registered)
            except asyncio.CancelledError:
                logger.info(f"Announcements cancelled for session {self.session_id}")
                raise
            except Exception as e:
                logger.error(f"Announcement error for session {self.session_id}: {e}")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Start announcing in the background on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._announce_loop())

    async def stop(self) -> None:
        """Cancel the background announcements and wait for them to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
