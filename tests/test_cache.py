import sqlite3
import tempfile
import unittest

from ip_threat_analyzer.cache import CacheStore
from ip_threat_analyzer.models import CacheRecord


def _record(**kw):
    base = dict(
        ip="1.2.3.4",
        country="US",
        region="Virginia",
        city="Ashburn",
        isp="Amazon",
        org="AWS",
        timezone="America/New_York",
        lat=39.04,
        lon=-77.49,
        hosting=True,
        geo_fetched_at=100.0,
        status="malicious",
        threat_level="critical",
        threat_type="malware",
        confidence=95,
        details={"malware": True, "categories": ["Malware"]},
        last_seen="2026-02-01T10:00:00+00:00",
        reputation=5,
        threat_fetched_at=100.0,
    )
    base.update(kw)
    return CacheRecord(**base)


class TestCacheStore(unittest.TestCase):
    def test_get_missing_returns_none(self):
        with tempfile.TemporaryDirectory() as d:
            store = CacheStore(f"{d}/cache.sqlite")
            self.assertIsNone(store.get("9.9.9.9"))

    def test_upsert_then_get_roundtrip(self):
        with tempfile.TemporaryDirectory() as d:
            store = CacheStore(f"{d}/cache.sqlite")
            rec = _record()
            store.upsert(rec)
            self.assertEqual(store.get("1.2.3.4"), rec)

    def test_upsert_updates_in_place(self):
        with tempfile.TemporaryDirectory() as d:
            store = CacheStore(f"{d}/cache.sqlite")
            store.upsert(_record())
            store.upsert(_record(status="safe", confidence=0, reputation=100, geo_fetched_at=200.0))

            self.assertEqual(store.count(), 1)
            got = store.get("1.2.3.4")
            self.assertEqual(got.status, "safe")
            self.assertEqual(got.geo_fetched_at, 200.0)

    def test_none_threat_timestamp_keeps_stored_value(self):
        with tempfile.TemporaryDirectory() as d:
            store = CacheStore(f"{d}/cache.sqlite")
            store.upsert(_record(threat_fetched_at=100.0))
            store.upsert(_record(threat_fetched_at=None, geo_fetched_at=300.0))

            got = store.get("1.2.3.4")
            self.assertEqual(got.threat_fetched_at, 100.0)
            self.assertEqual(got.geo_fetched_at, 300.0)

    def test_store_survives_reopen(self):
        with tempfile.TemporaryDirectory() as d:
            path = f"{d}/nested/dir/cache.sqlite"
            CacheStore(path).upsert(_record())
            self.assertEqual(CacheStore(path).get("1.2.3.4").city, "Ashburn")

    def test_geo_flags_roundtrip(self):
        with tempfile.TemporaryDirectory() as d:
            store = CacheStore(f"{d}/cache.sqlite")
            store.upsert(_record(proxy=True, hosting=False, tor=True))

            got = store.get("1.2.3.4")
            self.assertIs(got.proxy, True)
            self.assertIs(got.hosting, False)
            self.assertIs(got.tor, True)

    def test_adds_missing_flag_columns_to_older_table(self):
        with tempfile.TemporaryDirectory() as d:
            path = f"{d}/cache.sqlite"
            con = sqlite3.connect(path)
            con.execute(
                "CREATE TABLE ip_cache (ip TEXT PRIMARY KEY, country TEXT, region TEXT, city TEXT,"
                " isp TEXT, org TEXT, timezone TEXT, lat REAL, lon REAL,"
                " hosting INTEGER NOT NULL DEFAULT 0, geo_fetched_at REAL, status TEXT,"
                " threat_level TEXT, threat_type TEXT, confidence INTEGER, details TEXT,"
                " last_seen TEXT, reputation INTEGER, threat_fetched_at REAL)"
            )
            con.execute("INSERT INTO ip_cache (ip, city, hosting) VALUES ('5.6.7.8', 'Berlin', 1)")
            con.commit()
            con.close()

            store = CacheStore(path)
            old = store.get("5.6.7.8")
            self.assertEqual(old.city, "Berlin")
            self.assertTrue(old.hosting)
            self.assertFalse(old.proxy)
            self.assertFalse(old.tor)

            store.upsert(_record(proxy=True))
            self.assertTrue(store.get("1.2.3.4").proxy)


if __name__ == "__main__":
    unittest.main()
