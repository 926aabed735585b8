"""HTTP client for a running Intrig daemon.

Covers the operations external tools need:
- verify: POST /api/operations/verify with the cached hash map
- generate: GET /api/operations/generate as an SSE stream
- documentation lookups (search, endpoint/schema docs, sources)

Retry policy: 5xx responses and connection failures are retried up to
retry_count times with a fixed delay. Timeouts and 4xx are not retried.

Usage:
    with DaemonClient(project.url) as client:
        result = client.verify({"petstore": "ab12..."})
"""

import logging
import queue
import threading
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from intrig.core.result import DiscoveryError, Err, ErrorCode, Ok, Result, discovery_error
from intrig.daemon.protocol import SseLineParser, is_done_event

logger = logging.getLogger(__name__)

VERIFY_PATH = "/api/operations/verify"
GENERATE_PATH = "/api/operations/generate"
SEARCH_PATH = "/api/data/search"
ENDPOINT_DOC_PATH = "/api/data/get/endpoint/{id}"
SCHEMA_DOC_PATH = "/api/data/get/schema/{id}"
SOURCES_PATH = "/api/config/sources/list"

DEFAULT_TIMEOUT_S = 5.0
DEFAULT_RETRY_COUNT = 2
DEFAULT_RETRY_DELAY_S = 0.5
DEFAULT_GENERATE_TIMEOUT_S = 300.0

_END_OF_STREAM = object()


def http_error(status_code: int, reason: str) -> Err[DiscoveryError]:
    """Map an unsuccessful HTTP status to a DiscoveryError."""
    if status_code == 404:
        return discovery_error(
            ErrorCode.RESOURCE_NOT_FOUND, f"Resource not found: {reason}", status_code=status_code
        )
    if status_code >= 500:
        return discovery_error(
            ErrorCode.DAEMON_UNAVAILABLE,
            f"Server error: {status_code} {reason}",
            status_code=status_code,
        )
    return discovery_error(
        ErrorCode.INVALID_RESPONSE, f"HTTP {status_code}: {reason}", status_code=status_code
    )


def _pump_text(response: httpx.Response, chunks: "queue.Queue[Any]") -> None:
    """Move decoded stream text onto chunks; read errors are handed over too."""
    try:
        for chunk in response.iter_text():
            chunks.put(chunk)
    except (httpx.HTTPError, httpx.StreamError, OSError) as e:
        chunks.put(e)
    else:
        chunks.put(_END_OF_STREAM)


class DaemonClient:
    """
    Thin synchronous client for the daemon REST API.

    The httpx.Client is injected (or created and owned here); there is no
    module-level client cache.
    """

    def __init__(
        self,
        base_url: str,
        http: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        retry_count: int = DEFAULT_RETRY_COUNT,
        retry_delay: float = DEFAULT_RETRY_DELAY_S,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize client.

        Args:
            base_url: Daemon URL, e.g. "http://localhost:5050"
            http: httpx client to use (default: a new client owned by this object)
            timeout: Per-request timeout in seconds
            retry_count: Extra attempts for 5xx and connection failures
            retry_delay: Fixed delay between attempts in seconds
        """
        self.base_url = base_url.rstrip("/")
        self._owns_http = http is None
        self.http = http or httpx.Client()
        self.timeout = timeout
        self.retry_count = max(0, retry_count)
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._clock = clock

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "DaemonClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def verify(self, hashes: Dict[str, str]) -> Result[bool, DiscoveryError]:
        """
        Ask the daemon whether the cached hashes still match.

        Returns:
            Ok(True) on HTTP 200, Ok(False) on any other final status,
            Err when the daemon could not be reached
        """
        result = self._request("POST", VERIFY_PATH, json=hashes)
        if not isinstance(result, Ok):
            return result
        return Ok(result.value.status_code == 200)

    def generate(
        self,
        on_event: Optional[Callable[[Dict[str, Any]], None]] = None,
        timeout: float = DEFAULT_GENERATE_TIMEOUT_S,
    ) -> Result[bool, DiscoveryError]:
        """
        Trigger regeneration and consume its progress stream.

        Every parsed event is passed to on_event. The whole operation is
        bounded by timeout; on expiry the request is aborted.

        Returns:
            Ok(True) if a done event arrived, Ok(False) if the stream ended
            without one, Err on HTTP or transport failure
        """
        deadline = self._clock() + timeout
        parser = SseLineParser()
        on_event = on_event or (lambda event: None)
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}

        try:
            with self.http.stream(
                "GET",
                self.url(GENERATE_PATH),
                headers=headers,
                timeout=httpx.Timeout(self.timeout, read=timeout),
            ) as response:
                if response.status_code != 200:
                    return http_error(response.status_code, response.reason_phrase)

                # A single read may block for the whole read timeout, so reads
                # happen on a reader thread and only the wait here is bounded.
                chunks: "queue.Queue[Any]" = queue.Queue()
                reader = threading.Thread(
                    target=_pump_text, args=(response, chunks), name="intrig-sse-reader", daemon=True
                )
                reader.start()

                while True:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return self._generate_timeout(timeout)
                    try:
                        chunk = chunks.get(timeout=remaining)
                    except queue.Empty:
                        return self._generate_timeout(timeout)
                    if chunk is _END_OF_STREAM:
                        break
                    if isinstance(chunk, BaseException):
                        raise chunk
                    for event in parser.feed(chunk):
                        on_event(event)
                        if is_done_event(event):
                            return Ok(True)

                for event in parser.flush():
                    on_event(event)
                    if is_done_event(event):
                        return Ok(True)
                return Ok(False)
        except httpx.TimeoutException as e:
            return self._generate_timeout(timeout, e)
        except (httpx.HTTPError, httpx.StreamError, OSError) as e:
            return discovery_error(
                ErrorCode.DAEMON_UNAVAILABLE, f"Generate request failed: {e}", e
            )

    def search(
        self,
        query: str,
        type: Optional[str] = None,
        source: Optional[str] = None,
        page: int = 1,
        size: int = 15,
    ) -> Result[Any, DiscoveryError]:
        """
        Search endpoints and schemas.

        Args:
            type: "endpoint" (sent as "rest") or "schema"
            page: 1-based page number
        """
        params = {"query": query, "page": page, "size": size}
        if type:
            params["type"] = "rest" if type == "endpoint" else type
        if source:
            params["source"] = source
        return self._get_json(SEARCH_PATH, params=params)

    def get_endpoint_documentation(self, endpoint_id: str) -> Result[Any, DiscoveryError]:
        return self._get_json(ENDPOINT_DOC_PATH.format(id=quote(endpoint_id, safe="")))

    def get_schema_documentation(self, schema_id: str) -> Result[Any, DiscoveryError]:
        return self._get_json(SCHEMA_DOC_PATH.format(id=quote(schema_id, safe="")))

    def list_sources(self) -> Result[Any, DiscoveryError]:
        return self._get_json(SOURCES_PATH)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Result[Any, DiscoveryError]:
        result = self._request("GET", path, params=params, headers={"Accept": "application/json"})
        if not isinstance(result, Ok):
            return result

        response = result.value
        if not response.is_success:
            return http_error(response.status_code, response.reason_phrase)
        try:
            return Ok(response.json())
        except ValueError as e:
            return discovery_error(
                ErrorCode.INVALID_RESPONSE, f"Malformed JSON from {path}: {e}", e
            )

    def _request(self, method: str, path: str, **kwargs) -> Result[httpx.Response, DiscoveryError]:
        """
        Send a request with the retry policy applied.

        Returns Ok(response) for any status below 500; 5xx only surfaces as
        an error once retries are exhausted.
        """
        last_error: Optional[Err[DiscoveryError]] = None

        for attempt in range(self.retry_count + 1):
            if attempt:
                self._sleep(self.retry_delay)
            try:
                response = self.http.request(method, self.url(path), timeout=self.timeout, **kwargs)
            except httpx.TimeoutException as e:
                return discovery_error(ErrorCode.REQUEST_TIMEOUT, "Request timed out", e)
            except httpx.TransportError as e:
                logger.debug(f"{method} {path} attempt {attempt + 1} failed: {e}")
                last_error = discovery_error(
                    ErrorCode.DAEMON_UNAVAILABLE, "Could not connect to daemon", e
                )
                continue
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                return discovery_error(ErrorCode.DAEMON_UNAVAILABLE, str(e), e)

            if response.status_code >= 500:
                logger.debug(f"{method} {path} attempt {attempt + 1}: HTTP {response.status_code}")
                last_error = http_error(response.status_code, response.reason_phrase)
                continue

            return Ok(response)

        return last_error or discovery_error(
            ErrorCode.DAEMON_UNAVAILABLE, "Request failed after retries"
        )

    def _generate_timeout(self, timeout: float, cause: Any = None) -> Err[DiscoveryError]:
        return discovery_error(
            ErrorCode.REQUEST_TIMEOUT, f"Generate request timed out after {timeout:g}s", cause
        )
