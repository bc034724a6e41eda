"""Unit tests for ui.output and ui.dashboard -- JSON documents and rendering."""

import json
import os
import tempfile
import unittest
from unittest import mock

from rich.console import Console

from speedprobe.buffer import MeasurementBuffer, Phase
from speedprobe.endpoints import Endpoint
from speedprobe.history import SpeedTestResult
from speedprobe.probe import ProbeResult
from speedprobe.stats import Statistics
from ui.dashboard import (
    ConsoleNotifier,
    create_histogram,
    print_history,
    print_live_samples,
    print_probe_results,
    print_statistics,
)
from ui.output import create_selection_json, save_json, save_text


def _results():
    a = Endpoint(name="A", url="https://a.example")
    b = Endpoint(name="B", url="https://b.example")
    return a, b, [ProbeResult(a, True, 42.0, 200), ProbeResult.failed(b, "timeout")]


class TestCreateSelectionJson(unittest.TestCase):
    def test_basic_structure(self):
        a, _, results = _results()
        doc = create_selection_json(results, chosen=a, criteria="fastest")
        self.assertEqual(doc["criteria"], "fastest")
        self.assertEqual(doc["selected"]["name"], "A")
        self.assertTrue(doc["reachable"])
        self.assertEqual(doc["latency_ms"], 42.0)
        self.assertEqual(len(doc["probes"]), 2)
        self.assertEqual(doc["probes"][1]["error"], "timeout")

    def test_fallback_is_unreachable(self):
        _, b, results = _results()
        doc = create_selection_json(results, chosen=b)
        self.assertFalse(doc["reachable"])

    def test_nothing_chosen(self):
        _, _, results = _results()
        doc = create_selection_json(results)
        self.assertIsNone(doc["selected"])
        self.assertIsNone(doc["latency_ms"])

    def test_serialisable(self):
        a, _, results = _results()
        json.dumps(create_selection_json(results, chosen=a))


class TestSaveJson(unittest.TestCase):
    def test_roundtrip(self):
        data = {"key": "value", "number": 42}
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            path = f.name
        try:
            save_json(data, path)
            with open(path) as fh:
                loaded = json.load(fh)
            self.assertEqual(loaded, data)
        finally:
            os.unlink(path)

    def test_atomic_no_partial(self):
        # If the directory doesn't exist, it should raise, not leave a temp file
        with self.assertRaises(IOError):
            save_json({"a": 1}, "/nonexistent/dir/file.json")

    def test_save_text(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "history.csv")
            save_text("a,b\n1,2\n", path)
            with open(path) as fh:
                self.assertEqual(fh.read(), "a,b\n1,2\n")


class TestHistogram(unittest.TestCase):
    def test_empty(self):
        self.assertEqual(create_histogram([]), "No data")

    def test_length(self):
        self.assertEqual(len(create_histogram([1.0, 5.0, 3.0])), 3)

    def test_extremes(self):
        bars = create_histogram([0.0, 10.0])
        self.assertEqual(bars, "▁█")

    def test_scale(self):
        # 50 of 100 is mid-height, not full
        self.assertNotEqual(create_histogram([50.0], scale=100.0), "█")

    def test_constant(self):
        self.assertEqual(create_histogram([4.0, 4.0]), "▁▁")


class TestDashboardRendering(unittest.TestCase):
    def setUp(self):
        self.console = Console(record=True, width=120)
        patcher = mock.patch("ui.dashboard.console", self.console)
        patcher.start()
        self.addCleanup(patcher.stop)

    def text(self):
        return self.console.export_text()

    def test_probe_results(self):
        a, _, results = _results()
        print_probe_results(results, chosen=a)
        out = self.text()
        self.assertIn("a.example", out)
        self.assertIn("timeout", out)

    def test_statistics_empty(self):
        print_statistics(Statistics())
        self.assertIn("No test results available", self.text())

    def test_statistics(self):
        results = [SpeedTestResult.create(60.0, 20.0, 12.0, connection_type="WiFi")]
        print_statistics(Statistics.from_results(results))
        out = self.text()
        self.assertIn("60.00 Mbps", out)
        self.assertIn("WiFi", out)
        self.assertIn("Excellent", out)

    def test_history(self):
        r = SpeedTestResult.create(8.0, 2.0, 50.0, connection_type="Cellular")
        print_history([r])
        out = self.text()
        self.assertIn("Cellular", out)
        self.assertIn("Poor", out)
        self.assertIn(r.id[:8], out)

    def test_history_empty(self):
        print_history([])
        self.assertIn("No history yet", self.text())

    def test_live_samples(self):
        buf = MeasurementBuffer()
        buf.start_session()
        buf.add_sample(20.0, Phase.DOWNLOAD)
        print_live_samples(buf)
        out = self.text()
        self.assertIn("recording", out)
        self.assertIn("max 20.0 Mbps", out)
        self.assertIn("max 50.0 Mbps", out)

    def test_console_notifier(self):
        ConsoleNotifier().notify("Slow Internet Detected", "too slow")
        out = self.text()
        self.assertIn("Slow Internet Detected", out)
        self.assertIn("too slow", out)


if __name__ == "__main__":
    unittest.main()
