import datetime as dt
import unittest

from airseries.aggregation import HOUR_SECONDS
from airseries.domain import SeriesTier
from airseries.samples import CurrentSample, ForecastSample, HistorySample
from airseries.series_builder import SeriesBuilder, build_from_buckets, populated_count

H = HOUR_SECONDS
# 2023-11-14T10:00:00Z
START = 1699956000


def _times(entries):
    return [dt.datetime.strptime(e.time, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=dt.timezone.utc) for e in entries]


class TestSeriesShape(unittest.TestCase):
    def _assert_shape(self, result, hours):
        self.assertEqual(len(result.entries), hours)
        times = _times(result.entries)
        self.assertEqual(int(times[0].timestamp()), START)
        for a, b in zip(times, times[1:]):
            self.assertEqual(b - a, dt.timedelta(hours=1))

    def test_length_and_monotonic_time_for_every_tier(self):
        builder = SeriesBuilder(hours=24)
        inputs = [
            dict(forecast=[ForecastSample(START + i * H, {"pm2_5": 5.0}) for i in range(30)]),
            dict(history=[HistorySample(START - 2 * H, {"pm2_5": 8.0})]),
            dict(current=CurrentSample(START, {"pm2_5": 42.0})),
            dict(),
        ]
        for kwargs in inputs:
            self._assert_shape(builder.build(START, **kwargs), 24)

    def test_start_is_truncated_to_hour(self):
        builder = SeriesBuilder(hours=3)
        result = builder.build(START + 1234, current=CurrentSample(START, {"pm2_5": 1.0}))
        self.assertEqual(result.entries[0].time, "2023-11-14T10:00:00Z")

    def test_custom_length(self):
        builder = SeriesBuilder(hours=6)
        result = builder.build(START, history=[HistorySample(START, {"pm2_5": 3.0})])
        self.assertEqual(len(result.entries), 6)

    def test_rejects_non_positive_length(self):
        with self.assertRaises(ValueError):
            SeriesBuilder(hours=0)


class TestTierOrdering(unittest.TestCase):
    def test_rich_inputs_select_tier_one(self):
        builder = SeriesBuilder(hours=24, offline_default={"pm2_5": 999.0})
        forecast = [ForecastSample(START + i * H, {"pm2_5": 10.0 + i}) for i in range(0, 24, 3)]
        history = [HistorySample(START - i * H, {"pm2_5": 12.0}) for i in range(1, 6)]
        result = builder.build(START, forecast=forecast, history=history)

        self.assertIs(result.tier, SeriesTier.FORECAST_HISTORY)
        self.assertNotIn(999.0, [e.pm25 for e in result.entries])
        self.assertEqual(result.entries[0].pm25, 10.0)
        self.assertEqual(result.entries[0].sample_count, 1)
        # hour 1 lies between forecast hours 0 and 3
        self.assertAlmostEqual(result.entries[1].pm25, 11.0)
        self.assertEqual(result.entries[1].sample_count, 0)

    def test_overlapping_forecast_and_history_share_buckets(self):
        builder = SeriesBuilder(hours=2)
        result = builder.build(
            START,
            forecast=[ForecastSample(START + 60, {"pm2_5": 10.0}), ForecastSample(START + H, {"pm2_5": 4.0})],
            history=[HistorySample(START + 120, {"pm2_5": 20.0})],
        )
        self.assertEqual(result.entries[0].pm25, 15.0)
        self.assertEqual(result.entries[0].sample_count, 2)

    def test_history_only_uses_interpolation_tier_one(self):
        # With no forecast, the merged tier still covers history-only input.
        builder = SeriesBuilder(hours=4)
        history = [HistorySample(START - 2 * H, {"pm2_5": 8.0}), HistorySample(START - H, {"pm2_5": 6.0})]
        result = builder.build(START, history=history)
        self.assertIs(result.tier, SeriesTier.FORECAST_HISTORY)
        self.assertEqual([e.pm25 for e in result.entries], [6.0, 6.0, 6.0, 6.0])


class TestIndividualTiers(unittest.TestCase):
    def test_combined_insufficient_returns_none(self):
        builder = SeriesBuilder(hours=4)
        only_no2 = [ForecastSample(START, {"no2": 3.0})]
        self.assertIsNone(builder.from_combined(START, only_no2, []))
        self.assertIsNone(builder.from_combined(START, [], []))

    def test_forecast_matches_do_not_interpolate(self):
        builder = SeriesBuilder(hours=4)
        forecast = [
            ForecastSample(START + 120, {"pm2_5": 10.0, "no2": 1.0}),
            ForecastSample(START + 2 * H, {"pm2_5": 30.0}),
        ]
        entries = builder.from_forecast_matches(START, forecast)
        self.assertIsNotNone(entries)
        self.assertEqual([e.pm25 for e in entries], [10.0, None, 30.0, None])
        self.assertEqual(entries[0].no2, 1.0)
        self.assertIsNone(entries[2].no2)

    def test_forecast_matches_need_two_hours(self):
        builder = SeriesBuilder(hours=4)
        self.assertIsNone(builder.from_forecast_matches(START, [ForecastSample(START, {"pm2_5": 1.0})]))
        self.assertIsNone(builder.from_forecast_matches(START, []))

    def test_history_window_slices_target_hours(self):
        builder = SeriesBuilder(hours=3, history_pad_hours=12)
        history = [
            HistorySample(START - 4 * H, {"pm2_5": 40.0}),
            HistorySample(START + 2 * H, {"pm2_5": 10.0}),
        ]
        entries = builder.from_history(START, history)
        self.assertEqual([e.time for e in entries], [
            "2023-11-14T10:00:00Z",
            "2023-11-14T11:00:00Z",
            "2023-11-14T12:00:00Z",
        ])
        self.assertAlmostEqual(entries[0].pm25, 20.0)
        self.assertAlmostEqual(entries[1].pm25, 15.0)
        self.assertEqual(entries[2].pm25, 10.0)
        self.assertEqual(entries[2].sample_count, 1)

    def test_history_tier_insufficient(self):
        builder = SeriesBuilder(hours=3)
        self.assertIsNone(builder.from_history(START, [HistorySample(START, {"co": 300.0})]))


class TestSingleSampleFallback(unittest.TestCase):
    def test_current_sample_replicated(self):
        builder = SeriesBuilder(hours=24)
        result = builder.build(START, current=CurrentSample(START - 300, {"pm2_5": 42.0}))
        self.assertIs(result.tier, SeriesTier.SINGLE_SAMPLE)
        self.assertEqual(len(result.entries), 24)
        for entry in result.entries:
            self.assertEqual(entry.pm25, 42.0)
            self.assertEqual(entry.sample_count, 0)

    def test_today_history_average_outranks_current(self):
        builder = SeriesBuilder(hours=4)
        # history carries no PM2.5, so tiers 1-3 cannot reach the threshold
        history = [
            HistorySample(START - H, {"no2": 10.0}),
            HistorySample(START - 2 * H, {"no2": 20.0}),
            HistorySample(START - 30 * H, {"no2": 1000.0}),
        ]
        result = builder.build(START, history=history, current=CurrentSample(START, {"pm2_5": 42.0}))
        self.assertIs(result.tier, SeriesTier.SINGLE_SAMPLE)
        self.assertEqual([e.no2 for e in result.entries], [15.0] * 4)
        self.assertEqual([e.pm25 for e in result.entries], [None] * 4)
        self.assertEqual(result.warnings[0].source, "history")

    def test_offline_default_used_last(self):
        builder = SeriesBuilder(hours=3, offline_default={"PM25": 7.0, "pm10": 9.0})
        result = builder.build(START)
        self.assertIs(result.tier, SeriesTier.SINGLE_SAMPLE)
        self.assertEqual([e.pm25 for e in result.entries], [7.0, 7.0, 7.0])
        self.assertEqual(result.entries[0].pm10, 9.0)
        self.assertEqual(result.warnings[0].source, "offline_default")

    def test_no_data_at_all_returns_absent_series(self):
        builder = SeriesBuilder(hours=5)
        result = builder.build(START)
        self.assertIs(result.tier, SeriesTier.NO_DATA)
        self.assertEqual(len(result.entries), 5)
        self.assertEqual(populated_count(result.entries), 0)
        self.assertTrue(all(e.sample_count == 0 for e in result.entries))
        self.assertEqual(result.warnings[-1].source, "series")


class TestBuildFromBuckets(unittest.TestCase):
    def test_sparse_components_stay_absent(self):
        entries = build_from_buckets({}, START, 2)
        self.assertEqual(len(entries), 2)
        self.assertIsNone(entries[0].pm25)
        self.assertEqual(entries[0].sample_count, 0)


if __name__ == "__main__":
    unittest.main()
