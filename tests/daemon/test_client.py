"""
Tests for daemon/client.py - retry policy, error mapping and SSE consumption.

Requests are served by httpx.MockTransport, except for the stalled-stream
case, which needs a real loopback socket.
"""

import json
import socket
import threading
import time
import unittest

import httpx

from intrig.core.result import Err, ErrorCode, Ok
from intrig.daemon.client import DaemonClient, http_error


class RecordingHandler:
    """
    MockTransport handler replaying scripted outcomes (last one repeats).

    An outcome is a status code, a response builder, a response or an
    exception to raise.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, int):
            return httpx.Response(outcome)
        if callable(outcome):
            return outcome(request)
        return outcome


def sse_response(*chunks, status_code=200):
    def build(request):
        return httpx.Response(
            status_code,
            headers={"Content-Type": "text/event-stream"},
            content=iter([chunk.encode("utf-8") for chunk in chunks]),
        )
    return build


class ClientTestCase(unittest.TestCase):

    def setUp(self):
        self.sleeps = []

    def _client(self, handler, **kwargs):
        self.http = httpx.Client(transport=httpx.MockTransport(handler))
        self.addCleanup(self.http.close)
        kwargs.setdefault("sleep", self.sleeps.append)
        return DaemonClient("http://localhost:5050/", http=self.http, **kwargs)


class TestVerify(ClientTestCase):

    def test_retries_server_errors_then_succeeds(self):
        handler = RecordingHandler(503, 503, 200)
        client = self._client(handler, retry_count=2, retry_delay=0.5)

        result = client.verify({"petstore": "abc"})

        self.assertEqual(result, Ok(True))
        self.assertEqual(len(handler.requests), 3)
        self.assertEqual(self.sleeps, [0.5, 0.5])

    def test_posts_hash_map_as_json(self):
        handler = RecordingHandler(200)
        client = self._client(handler)

        client.verify({"petstore": "abc", "billing": "def"})

        request = handler.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(str(request.url), "http://localhost:5050/api/operations/verify")
        self.assertEqual(json.loads(request.content), {"petstore": "abc", "billing": "def"})

    def test_client_error_means_not_verified_without_retry(self):
        handler = RecordingHandler(409)
        client = self._client(handler)

        self.assertEqual(client.verify({}), Ok(False))
        self.assertEqual(len(handler.requests), 1)
        self.assertEqual(self.sleeps, [])

    def test_exhausted_server_errors(self):
        handler = RecordingHandler(503)
        client = self._client(handler, retry_count=2)

        result = client.verify({})

        self.assertIsInstance(result, Err)
        self.assertEqual(result.error.code, ErrorCode.DAEMON_UNAVAILABLE)
        self.assertEqual(result.error.status_code, 503)
        self.assertEqual(len(handler.requests), 3)

    def test_connection_failures_are_retried(self):
        handler = RecordingHandler(httpx.ConnectError("connection refused"))
        client = self._client(handler, retry_count=1, retry_delay=0.25)

        result = client.verify({})

        self.assertIsInstance(result, Err)
        self.assertEqual(result.error.code, ErrorCode.DAEMON_UNAVAILABLE)
        self.assertEqual(result.error.message, "Could not connect to daemon")
        self.assertEqual(len(handler.requests), 2)
        self.assertEqual(self.sleeps, [0.25])

    def test_timeout_is_not_retried(self):
        handler = RecordingHandler(httpx.ReadTimeout("timed out"))
        client = self._client(handler, retry_count=2)

        result = client.verify({})

        self.assertEqual(result.error.code, ErrorCode.REQUEST_TIMEOUT)
        self.assertEqual(len(handler.requests), 1)

    def test_injected_http_client_is_not_closed(self):
        client = self._client(RecordingHandler(200))
        with client:
            pass
        self.assertFalse(self.http.is_closed)


class TestGenerate(ClientTestCase):

    def test_done_event_completes_generation(self):
        handler = RecordingHandler(sse_response(
            'data: {"type":"status","step":"sync","sourceId":"petstore"}\n\n',
            'data: {"type":"done"}\n\n',
        ))
        client = self._client(handler)
        events = []

        result = client.generate(events.append)

        self.assertEqual(result, Ok(True))
        self.assertEqual(events[0]["sourceId"], "petstore")
        self.assertEqual(events[-1], {"type": "done"})
        request = handler.requests[0]
        self.assertEqual(request.method, "GET")
        self.assertEqual(request.url.path, "/api/operations/generate")
        self.assertEqual(request.headers["Accept"], "text/event-stream")

    def test_events_split_across_chunks(self):
        handler = RecordingHandler(sse_response('data: {"typ', 'e":"status"}\n', "\n"))
        client = self._client(handler)
        events = []

        result = client.generate(events.append)

        self.assertEqual(result, Ok(False))
        self.assertEqual(events, [{"type": "status"}])

    def test_unterminated_done_line_at_end_of_stream(self):
        client = self._client(RecordingHandler(sse_response('data: {"type":"done"}')))
        self.assertEqual(client.generate(), Ok(True))

    def test_http_error_status(self):
        client = self._client(RecordingHandler(sse_response(status_code=500)))

        result = client.generate()

        self.assertIsInstance(result, Err)
        self.assertEqual(result.error.code, ErrorCode.DAEMON_UNAVAILABLE)
        self.assertEqual(result.error.status_code, 500)

    def test_overall_deadline(self):
        ticks = iter([0.0, 200.0, 400.0])
        handler = RecordingHandler(sse_response(
            'data: {"type":"status","step":"a"}\n',
            'data: {"type":"status","step":"b"}\n',
            'data: {"type":"status","step":"c"}\n',
        ))
        client = self._client(handler, clock=lambda: next(ticks))
        events = []

        result = client.generate(events.append, timeout=300.0)

        self.assertEqual(result.error.code, ErrorCode.REQUEST_TIMEOUT)
        self.assertEqual(len(events), 1)

    def test_transport_timeout(self):
        client = self._client(RecordingHandler(httpx.ReadTimeout("timed out")))
        self.assertEqual(client.generate().error.code, ErrorCode.REQUEST_TIMEOUT)

    def test_connection_refused(self):
        client = self._client(RecordingHandler(httpx.ConnectError("refused")))
        self.assertEqual(client.generate().error.code, ErrorCode.DAEMON_UNAVAILABLE)


class StalledStreamServer:
    """Loopback HTTP server that sends one SSE chunk after a delay, then stalls."""

    def __init__(self, delay):
        self.delay = delay
        self.release = threading.Event()
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.bind(("127.0.0.1", 0))
        self.listener.listen(1)
        self.port = self.listener.getsockname()[1]
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self):
        conn, _ = self.listener.accept()
        with conn:
            conn.recv(65536)
            conn.sendall(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: text/event-stream\r\n"
                b"Transfer-Encoding: chunked\r\n\r\n"
            )
            time.sleep(self.delay)
            body = b'data: {"type":"status","step":"sync"}\n\n'
            conn.sendall(b"%x\r\n%s\r\n" % (len(body), body))
            self.release.wait(10)

    def close(self):
        self.release.set()
        self.thread.join(timeout=10)
        self.listener.close()


class TestGenerateDeadline(unittest.TestCase):

    def test_stall_after_late_chunk_is_cut_at_deadline(self):
        server = StalledStreamServer(delay=0.8)
        client = DaemonClient(f"http://127.0.0.1:{server.port}")
        events = []

        started = time.monotonic()
        result = client.generate(events.append, timeout=1.0)
        elapsed = time.monotonic() - started

        server.close()
        client.close()

        self.assertIsInstance(result, Err)
        self.assertEqual(result.error.code, ErrorCode.REQUEST_TIMEOUT)
        self.assertEqual(events, [{"type": "status", "step": "sync"}])
        self.assertLess(elapsed, 1.5)


class TestDocumentationLookups(ClientTestCase):

    def test_search_maps_endpoint_type(self):
        handler = RecordingHandler(httpx.Response(200, json={"results": [], "total": 0}))
        client = self._client(handler)

        result = client.search("pets", type="endpoint", source="petstore", page=2)

        self.assertEqual(result, Ok({"results": [], "total": 0}))
        params = handler.requests[0].url.params
        self.assertEqual(params["query"], "pets")
        self.assertEqual(params["type"], "rest")
        self.assertEqual(params["source"], "petstore")
        self.assertEqual(params["page"], "2")
        self.assertEqual(params["size"], "15")

    def test_search_schema_type_passes_through(self):
        handler = RecordingHandler(httpx.Response(200, json=[]))
        self._client(handler).search("Pet", type="schema")
        self.assertEqual(handler.requests[0].url.params["type"], "schema")

    def test_endpoint_documentation_not_found(self):
        handler = RecordingHandler(404)
        client = self._client(handler)

        result = client.get_endpoint_documentation("pets/get")

        self.assertEqual(result.error.code, ErrorCode.RESOURCE_NOT_FOUND)
        self.assertEqual(result.error.status_code, 404)
        self.assertEqual(handler.requests[0].url.raw_path, b"/api/data/get/endpoint/pets%2Fget")

    def test_schema_documentation_malformed_json(self):
        client = self._client(RecordingHandler(httpx.Response(200, content=b"<html>")))
        self.assertEqual(
            client.get_schema_documentation("Pet").error.code, ErrorCode.INVALID_RESPONSE
        )

    def test_list_sources(self):
        sources = [{"id": "petstore", "name": "Petstore"}]
        handler = RecordingHandler(httpx.Response(200, json=sources))
        client = self._client(handler)

        self.assertEqual(client.list_sources(), Ok(sources))
        self.assertEqual(handler.requests[0].url.path, "/api/config/sources/list")


class TestHttpError(unittest.TestCase):

    def test_status_mapping(self):
        self.assertEqual(http_error(404, "Not Found").error.code, ErrorCode.RESOURCE_NOT_FOUND)
        self.assertEqual(http_error(502, "Bad Gateway").error.code, ErrorCode.DAEMON_UNAVAILABLE)
        self.assertEqual(http_error(400, "Bad Request").error.code, ErrorCode.INVALID_RESPONSE)


if __name__ == "__main__":
    unittest.main()
