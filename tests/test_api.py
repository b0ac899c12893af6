"""
Tests for the web API.
"""

import unittest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from ip_threat_analyzer.classifier import error_result
from ip_threat_analyzer.models import AnalysisResult
from web.api import INVALID_INPUT_MESSAGE, app, get_analyzer


def _analyze(ips):
    out = []
    for ip in ips:
        if ip.startswith("10."):
            out.append(error_result(ip, "private range"))
        else:
            out.append(AnalysisResult(ip=ip, status="malicious", threat_level="critical",
                                      threat_type="malware", confidence=95, reputation=5))
    return out


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.analyzer = MagicMock()
        self.analyzer.analyze.side_effect = _analyze
        app.dependency_overrides[get_analyzer] = lambda: self.analyzer
        self.addCleanup(app.dependency_overrides.clear)
        self.client = TestClient(app)


class TestAnalyzeIps(ApiTestCase):
    def test_returns_one_result_per_ip_in_order(self):
        resp = self.client.post("/api/analyze-ips", json={"ipAddresses": ["1.2.3.4", "10.0.0.1", "1.2.3.4"]})

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual([r["ip"] for r in body], ["1.2.3.4", "10.0.0.1", "1.2.3.4"])
        self.assertEqual(body[0]["status"], "malicious")
        self.assertEqual(body[0]["threatLevel"], "critical")
        self.assertEqual(body[1]["status"], "error")
        self.assertEqual(body[1]["threatType"], "private range")
        self.assertIsNone(body[1]["lastSeen"])

    def test_result_keys(self):
        body = self.client.post("/api/analyze-ips", json={"ipAddresses": ["1.2.3.4"]}).json()
        self.assertEqual(
            set(body[0]),
            {"ip", "status", "threatLevel", "threatType", "location", "isp",
             "confidence", "details", "lastSeen", "reputation"},
        )

    def test_invalid_bodies_return_400(self):
        bad_bodies = [
            {},
            {"ipAddresses": []},
            {"ipAddresses": "1.2.3.4"},
            {"ips": ["1.2.3.4"]},
        ]
        for body in bad_bodies:
            with self.subTest(body=body):
                resp = self.client.post("/api/analyze-ips", json=body)
                self.assertEqual(resp.status_code, 400)
                self.assertEqual(resp.json(), {"error": INVALID_INPUT_MESSAGE})
        self.analyzer.analyze.assert_not_called()

    def test_non_json_body_returns_400(self):
        resp = self.client.post(
            "/api/analyze-ips", content=b"not json", headers={"Content-Type": "application/json"}
        )
        self.assertEqual(resp.status_code, 400)


class TestSummaryAndHealth(ApiTestCase):
    def test_summary(self):
        resp = self.client.post("/api/summary", json={"ipAddresses": ["1.2.3.4", "10.0.0.1"]})

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(
            body["summary"],
            {"total": 2, "safe": 0, "suspicious": 0, "malicious": 1, "unknown": 1},
        )
        self.assertEqual(len(body["results"]), 2)

    def test_health(self):
        resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")


if __name__ == "__main__":
    unittest.main()
