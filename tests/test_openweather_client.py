import unittest

from airseries.data_sources import http, openweather_client
from airseries.samples import SampleKind


class DummyResp:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self._payload


class RecordingSession:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {})})
        return DummyResp(self.payload)


def _air_payload():
    return {
        "coord": {"lon": -118.2437, "lat": 34.0522},
        "list": [
            {
                "main": {"aqi": 2},
                "components": {"co": 230.3, "no2": 12.1, "o3": 40.0, "pm2_5": 8.4, "pm10": 11.0, "so2": 1.2},
                "dt": 1700002800,
            },
            {
                "main": {"aqi": 2},
                "components": {"co": 240.0, "no2": None, "o3": 41.0, "pm2_5": 9.0, "pm10": 12.0},
                "dt": 1700006400,
            },
        ],
    }


def _weather_payload():
    return {
        "main": {"temp": 18.2, "humidity": 64, "pressure": 1014},
        "wind": {"speed": 3.6, "deg": 250},
        "sys": {"country": "US"},
        "name": "Los Angeles",
    }


class TestOpenWeatherClient(unittest.TestCase):
    def setUp(self):
        self._orig_session = http.session

    def tearDown(self):
        http.session = self._orig_session

    def test_fetch_forecast(self):
        http.session = RecordingSession(_air_payload())
        result = openweather_client.fetch_forecast(34.0522, -118.2437, api_key="k")
        self.assertTrue(result.ok)
        self.assertEqual(len(result.data), 2)
        self.assertIs(result.data[0].kind, SampleKind.FORECAST)
        self.assertEqual(dict(result.data[1].components), {"co": 240.0, "o3": 41.0, "pm2_5": 9.0, "pm10": 12.0})
        call = http.session.calls[0]
        self.assertEqual(call["url"], openweather_client.OPENWEATHER_AIR_FORECAST_URL)
        self.assertEqual(call["params"]["appid"], "k")

    def test_fetch_history_passes_bounds(self):
        http.session = RecordingSession(_air_payload())
        result = openweather_client.fetch_history(1.0, 2.0, 1699830000, 1700002800.5, api_key="k")
        self.assertTrue(result.ok)
        self.assertIs(result.data[0].kind, SampleKind.HISTORY)
        params = http.session.calls[0]["params"]
        self.assertEqual((params["start"], params["end"]), (1699830000, 1700002800))

    def test_fetch_current(self):
        http.session = RecordingSession(_air_payload())
        result = openweather_client.fetch_current(1.0, 2.0, api_key="k")
        self.assertEqual(result.data.timestamp, 1700002800)
        self.assertIs(result.data.kind, SampleKind.CURRENT)

    def test_fetch_current_empty_list(self):
        http.session = RecordingSession({"list": []})
        result = openweather_client.fetch_current(1.0, 2.0, api_key="k")
        self.assertTrue(result.ok)
        self.assertIsNone(result.data)

    def test_missing_list_is_error(self):
        http.session = RecordingSession({"cod": "401", "message": "Invalid API key"})
        result = openweather_client.fetch_forecast(1.0, 2.0, api_key="k")
        self.assertFalse(result.ok)
        self.assertIn("no list", result.reason)

    def test_missing_key_skips_request(self):
        http.session = RecordingSession(_air_payload())
        for fetch in (openweather_client.fetch_forecast, openweather_client.fetch_current):
            result = fetch(1.0, 2.0, api_key=None)
            self.assertFalse(result.ok)
            self.assertIn("API key", result.reason)
        self.assertEqual(http.session.calls, [])

    def test_fetch_point_weather(self):
        http.session = RecordingSession(_weather_payload())
        result = openweather_client.fetch_point_weather(1.0, 2.0, api_key="k")
        weather = result.data
        self.assertEqual(weather.temperature, 18.2)
        self.assertEqual(weather.humidity, 64.0)
        self.assertEqual(weather.wind_speed, 3.6)
        self.assertEqual(weather.pressure, 1014.0)
        self.assertEqual(weather.name, "Los Angeles")
        self.assertEqual(http.session.calls[0]["params"]["units"], "metric")

    def test_point_weather_carries_country(self):
        http.session = RecordingSession(_weather_payload())
        self.assertEqual(openweather_client.fetch_point_weather(1.0, 2.0, api_key="k").data.country, "US")

        http.session = RecordingSession({"main": {"temp": 1.0}})
        result = openweather_client.fetch_point_weather(1.0, 2.0, api_key="k")
        self.assertTrue(result.ok)
        self.assertIsNone(result.data.country)



if __name__ == "__main__":
    unittest.main()
