import os
import tempfile
import unittest

from ip_threat_analyzer.normalize import is_ipv4, iter_ips_from_file, parse_ip_lines


class TestIsIpv4(unittest.TestCase):
    def test_valid(self):
        for ip in ("1.2.3.4", "0.0.0.0", "255.255.255.255", "10.0.0.1", " 8.8.8.8 "):
            with self.subTest(ip=ip):
                self.assertTrue(is_ipv4(ip))

    def test_invalid(self):
        for ip in ("256.1.1.1", "1.2.3", "1.2.3.4.5", "a.b.c.d", "", "::1", "1.2.3.4/24"):
            with self.subTest(ip=ip):
                self.assertFalse(is_ipv4(ip))


class TestParseLines(unittest.TestCase):
    def test_keeps_order_and_duplicates(self):
        text = "8.8.8.8\n\n# comment\n1.2.3.4\nnot-an-ip\n8.8.8.8\r\n"
        self.assertEqual(parse_ip_lines(text), ["8.8.8.8", "1.2.3.4", "8.8.8.8"])

    def test_file(self):
        with tempfile.NamedTemporaryFile("w", suffix=".txt", delete=False) as f:
            f.write("1.1.1.1\n999.1.1.1\n  2.2.2.2  \n")
            path = f.name
        self.addCleanup(os.unlink, path)
        self.assertEqual(list(iter_ips_from_file(path)), ["1.1.1.1", "2.2.2.2"])


if __name__ == "__main__":
    unittest.main()
