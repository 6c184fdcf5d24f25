import logging
import threading
import time
import unittest
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import requests

from airseries.data_sources import http


class DummyResp:
    def __init__(self, payload=None, status_code=200, json_error=None):
        self._payload = payload
        self.status_code = status_code
        self.text = "body"
        self._json_error = json_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if self._json_error is not None:
            raise self._json_error
        return self._payload


class RecordingSession:
    def __init__(self, resp=None, exc=None):
        self.resp = resp
        self.exc = exc
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.resp


class TestSafeGet(unittest.TestCase):
    def setUp(self):
        self._orig_session = http.session

    def tearDown(self):
        http.session = self._orig_session

    def test_ok_payload(self):
        http.session = RecordingSession(DummyResp({"list": []}))
        result = http.safe_get("https://example.test/a", params={"lat": 1}, timeout=3, source="demo")
        self.assertTrue(result.ok)
        self.assertEqual(result.data, {"list": []})
        self.assertEqual(http.session.calls[0]["timeout"], 3)

    def test_default_timeout_from_settings(self):
        http.session = RecordingSession(DummyResp({}))
        http.safe_get("https://example.test/a")
        self.assertEqual(http.session.calls[0]["timeout"], http.settings.request_timeout_seconds)

    def test_http_status_error(self):
        http.session = RecordingSession(DummyResp(status_code=401))
        result = http.safe_get("https://example.test/a", source="openweather_forecast")
        self.assertFalse(result.ok)
        self.assertEqual(result.status, 401)
        self.assertEqual(result.reason, "openweather_forecast returned HTTP 401")
        self.assertEqual(result.to_detail(), {"message": result.reason, "status": 401})

    def test_transport_error(self):
        http.session = RecordingSession(exc=requests.ConnectionError("boom"))
        result = http.safe_get("https://example.test/a", source="nasa_power")
        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "nasa_power request failed: ConnectionError")
        self.assertIsNone(result.status)

    def test_malformed_body(self):
        http.session = RecordingSession(DummyResp(json_error=ValueError("no json")))
        result = http.safe_get("https://example.test/a", source="bigdatacloud")
        self.assertFalse(result.ok)
        self.assertEqual(result.reason, "bigdatacloud returned a malformed body")

    def test_error_logs_mask_api_keys(self):
        http.session = RecordingSession(DummyResp(status_code=500))
        with self.assertLogs("airseries.data_sources.http", level="ERROR") as cm:
            http.safe_get("https://example.test/a", params={"lat": 1, "appid": "secret-key"}, source="demo")
        record = cm.records[0]
        self.assertEqual(record.params["appid"], "***")
        self.assertNotIn("secret-key", logging.Formatter().format(record))

class _SlowHandler(BaseHTTPRequestHandler):
    delay = 1.0
    hits = 0

    def do_GET(self):
        type(self).hits += 1
        time.sleep(self.delay)
        try:
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.end_headers()
            self.wfile.write(b"{}")
        except (BrokenPipeError, ConnectionError):
            pass

    def log_message(self, *args):
        pass


class TestSessionTimeouts(unittest.TestCase):
    def setUp(self):
        _SlowHandler.hits = 0
        self.server = ThreadingHTTPServer(("127.0.0.1", 0), _SlowHandler)
        self.server.block_on_close = False
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()
        self.url = f"http://127.0.0.1:{self.server.server_address[1]}/slow"

    def tearDown(self):
        self.server.shutdown()
        self.server.server_close()

    def test_retries_only_on_status(self):
        retries = http.session.get_adapter("https://example.test").max_retries
        self.assertEqual(retries.read, 0)
        self.assertEqual(retries.connect, 0)
        self.assertIn(500, retries.status_forcelist)

    def test_slow_endpoint_bounded_by_timeout(self):
        started = time.monotonic()
        with self.assertLogs("airseries.data_sources.http", level="ERROR"):
            result = http.safe_get(self.url, timeout=0.3, source="slow")
        elapsed = time.monotonic() - started

        self.assertFalse(result.ok)
        self.assertTrue(result.reason.startswith("slow request failed"))
        self.assertLess(elapsed, 0.9)
        self.assertEqual(_SlowHandler.hits, 1)



if __name__ == "__main__":
    unittest.main()
