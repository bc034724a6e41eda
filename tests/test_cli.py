"""Tests for CLI validation, history commands and the selection run."""

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from datetime import datetime, timedelta, timezone
from unittest import mock

from aiohttp import test_utils, web
from rich.console import Console

from speedprobe.constants import MAX_PROBE_TIMEOUT, MIN_PROBE_TIMEOUT
from speedprobe.endpoints import Endpoint
from speedprobe.history import HistoryStore, SpeedTestResult
from speedprobe.selector import SelectionCriteria
from speedprobe.storage import FileStorage, MemoryStorage


class TestValidation(unittest.TestCase):
    """Test the _validate function from main.py."""

    def _validate(self, **kwargs):
        from main import _validate
        defaults = {"timeout": 10.0, "discover": 0}
        defaults.update(kwargs)
        return _validate(**defaults)

    def test_defaults_valid(self):
        # Should not raise
        self._validate()

    def test_timeout_too_low(self):
        with self.assertRaises(ValueError):
            self._validate(timeout=MIN_PROBE_TIMEOUT / 2)

    def test_timeout_too_high(self):
        with self.assertRaises(ValueError):
            self._validate(timeout=MAX_PROBE_TIMEOUT + 1)

    def test_timeout_boundaries(self):
        self._validate(timeout=MIN_PROBE_TIMEOUT)
        self._validate(timeout=MAX_PROBE_TIMEOUT)

    def test_negative_discover(self):
        with self.assertRaises(ValueError):
            self._validate(discover=-1)


class TestParseLocation(unittest.TestCase):
    def test_none(self):
        from main import _parse_location
        self.assertIsNone(_parse_location(None))

    def test_valid(self):
        from main import _parse_location
        self.assertEqual(_parse_location("52.5,13.4"), (52.5, 13.4))

    def test_bad_format(self):
        from main import _parse_location
        for raw in ("52.5", "a,b", "1,2,3"):
            with self.assertRaises(ValueError):
                _parse_location(raw)

    def test_out_of_range(self):
        from main import _parse_location
        with self.assertRaises(ValueError):
            _parse_location("91,0")


class TestSelectResults(unittest.TestCase):
    def setUp(self):
        now = datetime.now(timezone.utc)
        self.store = HistoryStore(MemoryStorage())
        self.old_wifi = SpeedTestResult(now - timedelta(days=30), 60.0, 10.0, 10.0, connection_type="WiFi")
        self.new_wifi = SpeedTestResult(now - timedelta(hours=1), 8.0, 2.0, 40.0, connection_type="WiFi")
        self.new_cell = SpeedTestResult(now - timedelta(hours=2), 30.0, 5.0, 30.0, connection_type="Cellular")
        for r in (self.old_wifi, self.new_cell, self.new_wifi):
            self.store.add(r)

    def test_no_filters(self):
        from main import _select_results
        self.assertEqual(len(_select_results(self.store)), 3)

    def test_filters_intersect(self):
        from main import _select_results
        self.assertEqual(_select_results(self.store, days=7, connection_type="WiFi"), [self.new_wifi])

    def test_quality(self):
        from main import _select_results
        self.assertEqual(_select_results(self.store, quality="Good"), [self.new_cell])


class TestHistoryCommands(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.history_path = os.path.join(self.tmpdir.name, "history.json")
        self.config_path = os.path.join(self.tmpdir.name, "config.json")
        with open(self.config_path, "w") as fh:
            json.dump({"history_file": self.history_path}, fh)

        self.console = Console(record=True, width=120)
        for target in ("main.console", "ui.dashboard.console"):
            patcher = mock.patch(target, self.console)
            patcher.start()
            self.addCleanup(patcher.stop)
        patcher = mock.patch("speedprobe.config._config_path", return_value=self.config_path)
        patcher.start()
        self.addCleanup(patcher.stop)

    def run_main(self, *argv):
        from main import main
        buf = io.StringIO()
        with redirect_stdout(buf):
            main(list(argv))
        return buf.getvalue()

    def stored(self):
        return HistoryStore(FileStorage(self.history_path)).results

    def test_record(self):
        self.run_main("--record", "95.2", "12.4", "18.0", "--connection-type", "Ethernet")
        results = self.stored()
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].download_speed, 95.2)
        self.assertEqual(results[0].connection_type, "Ethernet")
        self.assertIn("Excellent", self.console.export_text())

    def test_record_slow_with_alerts_on(self):
        with open(self.config_path, "w") as fh:
            json.dump({
                "history_file": self.history_path,
                "low_speed_notifications": True,
                "notifications_enabled": True,
            }, fh)
        self.run_main("--record", "1.0", "0.5", "90")
        self.assertIn("Slow Internet Detected", self.console.export_text())

    def test_stats_json(self):
        self.run_main("--record", "10", "5", "20")
        self.run_main("--record", "30", "5", "10")
        out = self.run_main("--stats", "--json")
        stats = json.loads(out)
        self.assertEqual(stats["total_tests"], 2)
        self.assertEqual(stats["average_download"], 20.0)

    def test_export_csv(self):
        self.run_main("--record", "10", "5", "20", "--jitter", "1.5", "--connection-type", "WiFi")
        csv_path = os.path.join(self.tmpdir.name, "out.csv")
        self.run_main("--export-csv", csv_path)
        with open(csv_path) as fh:
            lines = fh.read().splitlines()
        self.assertTrue(lines[0].startswith("Date,Time,"))
        self.assertTrue(lines[1].endswith(",10.00,5.00,20.0,1.5,WiFi,Fair"))

    def test_delete_and_clear(self):
        self.run_main("--record", "10", "5", "20")
        self.run_main("--record", "20", "5", "20")
        target = self.stored()[0].id
        self.run_main("--delete", target)
        self.assertNotIn(target, {r.id for r in self.stored()})
        self.run_main("--clear-history")
        self.assertEqual(self.stored(), [])

    def test_export_and_import_json(self):
        self.run_main("--record", "10", "5", "20")
        export_path = os.path.join(self.tmpdir.name, "export.json")
        self.run_main("--export-json", export_path)
        self.run_main("--clear-history")
        self.run_main("--import-json", export_path)
        self.assertEqual(len(self.stored()), 1)

    def saved_config(self):
        with open(self.config_path) as fh:
            return json.load(fh)

    def test_low_speed_settings_persist(self):
        self.run_main("--low-speed-alerts", "on", "--low-speed-threshold", "12")
        saved = self.saved_config()
        self.assertTrue(saved["low_speed_notifications"])
        self.assertEqual(saved["low_speed_threshold"], 12.0)
        self.assertEqual(saved["history_file"], self.history_path)
        self.assertEqual(self.stored(), [])

        self.run_main("--low-speed-alerts", "off")
        self.assertFalse(self.saved_config()["low_speed_notifications"])

    def test_settings_apply_to_same_run(self):
        with open(self.config_path, "w") as fh:
            json.dump({"history_file": self.history_path, "notifications_enabled": True}, fh)
        self.run_main(
            "--low-speed-alerts", "on", "--low-speed-threshold", "12",
            "--record", "10", "5", "20",
        )
        self.assertEqual(len(self.stored()), 1)
        self.assertIn("Slow Internet Detected", self.console.export_text())

    def test_bad_threshold_exits(self):
        with self.assertRaises(SystemExit) as cm:
            self.run_main("--low-speed-threshold", "0")
        self.assertEqual(cm.exception.code, 1)
        self.assertNotIn("low_speed_threshold", self.saved_config())

    def test_bad_timeout_exits(self):
        with self.assertRaises(SystemExit) as cm:
            self.run_main("--timeout", "0")
        self.assertEqual(cm.exception.code, 1)


async def _ok(request):
    return web.Response(text="ok")


async def _missing(request):
    return web.Response(status=404)


class TestRunSelection(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        app = web.Application()
        app.router.add_get("/ok", _ok)
        app.router.add_get("/missing", _missing)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()

    async def asyncTearDown(self):
        await self.server.close()

    async def test_json_output(self):
        from main import run_selection
        candidates = [
            Endpoint(name="bad", url="not a url"),
            Endpoint(name="ok", url=str(self.server.make_url("/ok"))),
        ]
        buf = io.StringIO()
        with redirect_stdout(buf):
            doc = await run_selection(candidates, timeout=5.0, json_output=True)
        self.assertEqual(doc["selected"]["name"], "ok")
        self.assertTrue(doc["reachable"])
        self.assertEqual(json.loads(buf.getvalue())["selected"]["name"], "ok")

    async def test_output_file(self):
        from main import run_selection
        candidates = [Endpoint(name="missing", url=str(self.server.make_url("/missing")))]
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "selection.json")
            with mock.patch("main.console", Console(file=io.StringIO())), \
                    mock.patch("ui.dashboard.console", Console(file=io.StringIO())):
                await run_selection(
                    candidates, timeout=5.0, criteria=SelectionCriteria.AUTOMATIC, output_file=path,
                )
            with open(path) as fh:
                doc = json.load(fh)
        self.assertEqual(doc["criteria"], "automatic")
        self.assertEqual(doc["probes"][0]["status_code"], 404)
        self.assertFalse(doc["reachable"])


if __name__ == "__main__":
    unittest.main()
