import io
import json
import threading
import time
import unittest
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

import requests

from bitflyer.api.client import BitflyerClient
from bitflyer.api.endpoint import ClientConfig, PagingParams
from bitflyer.api.errors import DeadlineExceededError, NetworkError, ResponseDecodeError, StatusError


def make_response(status: int, payload=None, text: str | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    if text is None:
        text = "" if payload is None else json.dumps(payload)
    response.raw = io.BytesIO(text.encode("utf-8"))
    response.encoding = "utf-8"
    return response


class StubSession:
    """Records outgoing requests and replays prepared responses or exceptions."""

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes)
        self.calls = []
        self.closed = False

    def request(self, method, url, headers=None, data=None, timeout=None, stream=False):
        self.calls.append({"method": method, "url": url, "headers": headers, "data": data, "timeout": timeout, "stream": stream})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def close(self) -> None:
        self.closed = True


TICKER = {
    "product_code": "BTC_JPY",
    "timestamp": "2015-07-08T02:50:59.97",
    "tick_id": 3579,
    "best_bid": 100.5,
    "best_ask": 101.25,
    "best_bid_size": 0.1,
    "best_ask_size": 5,
    "total_bid_depth": 15.13,
    "total_ask_depth": 20,
    "ltp": 100.75,
    "volume": 16819.82,
    "volume_by_product": 6819.82,
}


class PublicEndpointTest(unittest.TestCase):
    def make_client(self, *outcomes) -> BitflyerClient:
        self.session = StubSession(*outcomes)
        return BitflyerClient(session=self.session, clock=lambda: 1700000000.9)

    def test_ticker_decodes_exact_values(self) -> None:
        client = self.make_client(make_response(200, TICKER))

        ticker = client.get_ticker("BTC_JPY")

        self.assertEqual(100.5, ticker.best_bid)
        self.assertEqual(101.25, ticker.best_ask)
        self.assertEqual(3579, ticker.tick_id)
        self.assertEqual(16819.82, ticker.volume)
        call = self.session.calls[0]
        self.assertEqual("GET", call["method"])
        self.assertEqual("https://api.bitflyer.jp/v1/ticker?product_code=BTC_JPY", call["url"])
        self.assertIsNone(call["data"])
        self.assertEqual(10.0, call["timeout"])
        self.assertTrue(call["stream"])

    def test_public_calls_without_credentials_are_unsigned(self) -> None:
        client = self.make_client(make_response(200, [{"product_code": "BTC_JPY"}]))

        client.get_markets()

        headers = self.session.calls[0]["headers"]
        self.assertNotIn("ACCESS-KEY", headers)
        self.assertNotIn("ACCESS-TIMESTAMP", headers)
        self.assertNotIn("ACCESS-SIGN", headers)

    def test_markets_without_filters_have_no_query(self) -> None:
        client = self.make_client(make_response(200, [{"product_code": "BTC_JPY"}, {"product_code": "BTCJPY28SEP2015", "alias": "BTCJPY_MAT3M"}]))

        markets = client.get_markets()

        self.assertEqual("https://api.bitflyer.jp/v1/markets", self.session.calls[0]["url"])
        self.assertEqual(["BTC_JPY", "BTCJPY28SEP2015"], [market.product_code for market in markets])
        self.assertEqual("BTCJPY_MAT3M", markets[1].alias)

    def test_empty_product_code_is_omitted(self) -> None:
        client = self.make_client(make_response(200, {"mid_price": 33320, "bids": [], "asks": []}))

        board = client.get_board()

        self.assertEqual("", urlsplit(self.session.calls[0]["url"]).query)
        self.assertEqual(33320.0, board.mid_price)

    def test_execution_paging(self) -> None:
        client = self.make_client(make_response(200, [{"id": 39287, "side": "BUY", "price": 31690, "size": 27.04}]))

        executions = client.get_executions("BTC_JPY", PagingParams(count=10, before=5))

        self.assertEqual("product_code=BTC_JPY&count=10&before=5", urlsplit(self.session.calls[0]["url"]).query)
        self.assertEqual(39287, executions[0].id)
        self.assertEqual(31690.0, executions[0].price)

    def test_health_and_chats(self) -> None:
        client = self.make_client(
            make_response(200, {"status": "NORMAL"}),
            make_response(200, [{"nickname": "c", "message": "hi", "date": "2016-02-16T10:58:08.833"}]),
        )

        self.assertEqual("NORMAL", client.get_health().status)
        chats = client.get_chats("2016-02-16")

        self.assertEqual("https://api.bitflyer.jp/v1/getchats?from_date=2016-02-16", self.session.calls[1]["url"])
        self.assertEqual("hi", chats[0].message)

    def test_non_200_status_raises_status_error(self) -> None:
        client = self.make_client(
            make_response(401, {"status": -500, "error_message": "Invalid signature", "data": None})
        )

        with self.assertRaises(StatusError) as ctx:
            client.get_ticker("BTC_JPY")

        self.assertEqual(401, ctx.exception.status_code)
        self.assertEqual("Invalid signature", ctx.exception.error_message)
        self.assertIn("401", str(ctx.exception))

    def test_other_success_codes_are_still_failures(self) -> None:
        client = self.make_client(make_response(204))

        with self.assertRaises(StatusError) as ctx:
            client.get_health()
        self.assertEqual(204, ctx.exception.status_code)
        self.assertIsNone(ctx.exception.error_message)

    def test_object_instead_of_array_is_a_decode_error(self) -> None:
        client = self.make_client(make_response(200, {"product_code": "BTC_JPY"}))

        with self.assertRaises(ResponseDecodeError) as ctx:
            client.get_markets()
        self.assertEqual('{"product_code": "BTC_JPY"}', ctx.exception.body)

    def test_invalid_json_is_a_decode_error(self) -> None:
        client = self.make_client(make_response(200, text="<html>maintenance</html>"))

        with self.assertRaises(ResponseDecodeError) as ctx:
            client.get_ticker()
        self.assertIsInstance(ctx.exception.cause, ValueError)

    def test_connection_failure_is_a_network_error(self) -> None:
        client = self.make_client(requests.ConnectionError("connection refused"))

        with self.assertRaises(NetworkError) as ctx:
            client.get_ticker()
        self.assertNotIsInstance(ctx.exception, DeadlineExceededError)

    def test_timeout_is_a_deadline_error(self) -> None:
        client = self.make_client(requests.ReadTimeout("read timed out"))

        with self.assertRaises(DeadlineExceededError):
            client.get_ticker(timeout=0.5)
        self.assertEqual(0.5, self.session.calls[0]["timeout"])

    def test_expired_deadline_sends_nothing(self) -> None:
        client = self.make_client()

        with self.assertRaises(DeadlineExceededError):
            client.get_ticker(timeout=0)
        self.assertEqual([], self.session.calls)

    def test_failed_call_does_not_break_the_client(self) -> None:
        client = self.make_client(make_response(500, text="oops"), make_response(200, TICKER))

        with self.assertRaises(StatusError):
            client.get_ticker("BTC_JPY")
        self.assertEqual(100.5, client.get_ticker("BTC_JPY").best_bid)

    def test_configured_timeout_and_base_url(self) -> None:
        session = StubSession(make_response(200, {"status": "NORMAL"}))
        config = ClientConfig(base_url="http://localhost:8080/proxy", timeout=2.5)
        client = BitflyerClient(config=config, session=session)

        client.get_health()

        self.assertEqual("http://localhost:8080/proxy/v1/gethealth", session.calls[0]["url"])
        self.assertEqual(2.5, session.calls[0]["timeout"])

    def test_context_manager_leaves_caller_session_open(self) -> None:
        session = StubSession()
        with BitflyerClient(session=session):
            pass
        self.assertFalse(session.closed)

        with BitflyerClient() as client:
            owned = client.session
        self.assertIsInstance(owned, requests.Session)


class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class DribblingBody:
    """Body stream that hands out one byte per read, each read costing ``step`` seconds."""

    def __init__(self, data: bytes, clock: FakeMonotonic, step: float) -> None:
        self.data = data
        self.clock = clock
        self.step = step
        self.closed = False

    def read(self, size=-1) -> bytes:
        self.clock.now += self.step
        chunk, self.data = self.data[:1], self.data[1:]
        return chunk

    def close(self) -> None:
        self.closed = True


class DribblingHandler(BaseHTTPRequestHandler):
    body = b'{"status": "NORMAL"}'
    delay = 0.2

    def do_GET(self) -> None:
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        try:
            for byte in self.body:
                self.wfile.write(bytes([byte]))
                self.wfile.flush()
                time.sleep(self.delay)
        except OSError:
            return

    def log_message(self, format, *args) -> None:
        pass


class WholeCallDeadlineTest(unittest.TestCase):
    def test_slow_body_exceeds_the_deadline(self) -> None:
        clock = FakeMonotonic()
        body = DribblingBody(json.dumps({"status": "NORMAL"}).encode("utf-8"), clock, step=0.3)
        response = requests.Response()
        response.status_code = 200
        response.raw = body
        response.encoding = "utf-8"
        client = BitflyerClient(session=StubSession(response), monotonic=clock)

        with self.assertRaises(DeadlineExceededError):
            client.get_health(timeout=1.0)

        self.assertTrue(body.closed)
        self.assertGreater(len(body.data), 0)

    def test_body_within_the_deadline_is_returned(self) -> None:
        clock = FakeMonotonic()
        body = DribblingBody(b'{"status": "BUSY"}', clock, step=0.01)
        response = requests.Response()
        response.status_code = 200
        response.raw = body
        response.encoding = "utf-8"
        client = BitflyerClient(session=StubSession(response), monotonic=clock)

        self.assertEqual("BUSY", client.get_health(timeout=1.0).status)

    def test_dribbling_server_is_cut_off_at_the_deadline(self) -> None:
        server = ThreadingHTTPServer(("127.0.0.1", 0), DribblingHandler)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        self.addCleanup(server.server_close)
        self.addCleanup(server.shutdown)

        session = requests.Session()
        session.trust_env = False
        self.addCleanup(session.close)
        host, port = server.server_address[:2]
        config = ClientConfig(base_url=f"http://{host}:{port}")
        client = BitflyerClient(config=config, session=session)

        started = time.monotonic()
        with self.assertRaises(DeadlineExceededError):
            client.get_health(timeout=0.5)
        elapsed = time.monotonic() - started

        self.assertLess(elapsed, 2.0)


if __name__ == "__main__":
    unittest.main()
