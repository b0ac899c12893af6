import unittest

from ip_threat_analyzer.freshness import FreshnessDecision, decide
from ip_threat_analyzer.models import CacheRecord

NOW = 1_771_416_000.0
HOUR = 3600


class TestFreshness(unittest.TestCase):
    def test_no_record_fetches_everything(self):
        self.assertEqual(decide(None, now=NOW), FreshnessDecision(True, True))

    def test_fresh_threat_data_is_reused(self):
        record = CacheRecord(ip="1.2.3.4", country="US", threat_fetched_at=NOW - 23 * HOUR)
        d = decide(record, now=NOW)
        self.assertFalse(d.need_geo_fetch)
        self.assertFalse(d.need_threat_fetch)

    def test_stale_threat_data_is_refetched(self):
        record = CacheRecord(ip="1.2.3.4", country="US", threat_fetched_at=NOW - 25 * HOUR)
        d = decide(record, now=NOW)
        self.assertFalse(d.need_geo_fetch)
        self.assertTrue(d.need_threat_fetch)

    def test_exactly_at_window_is_stale(self):
        record = CacheRecord(ip="1.2.3.4", threat_fetched_at=NOW - 24 * HOUR)
        self.assertTrue(decide(record, now=NOW).need_threat_fetch)

    def test_geo_only_record_needs_threat_fetch(self):
        record = CacheRecord(ip="1.2.3.4", country="US", city="Ashburn", geo_fetched_at=NOW - 60)
        d = decide(record, now=NOW)
        self.assertFalse(d.need_geo_fetch)
        self.assertTrue(d.need_threat_fetch)

    def test_geo_never_expires(self):
        record = CacheRecord(ip="1.2.3.4", geo_fetched_at=NOW - 365 * 24 * HOUR, threat_fetched_at=NOW)
        self.assertFalse(decide(record, now=NOW).need_geo_fetch)

    def test_custom_max_age(self):
        record = CacheRecord(ip="1.2.3.4", threat_fetched_at=NOW - 2 * HOUR)
        self.assertTrue(decide(record, max_age_seconds=HOUR, now=NOW).need_threat_fetch)
        self.assertFalse(decide(record, max_age_seconds=3 * HOUR, now=NOW).need_threat_fetch)


if __name__ == "__main__":
    unittest.main()
