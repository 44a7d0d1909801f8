import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from node_reservation import to_millis
from node_reservation.web_app import create_app

CONFIG_YAML = """\
nodes:
  - name: build-01
    executors: 4
    schedule: "2:0 9 * * 1-5:480"
  - name: idle
    executors: 1
"""


def at(*args: int) -> int:
    return to_millis(datetime(*args, tzinfo=timezone.utc))


class TestCheckFormat(unittest.TestCase):
    def setUp(self) -> None:
        self.client = create_app().test_client()

    def test_valid_format(self) -> None:
        response = self.client.post("/api/check-format", json={"format": "2:0 9 * * 1-5:480"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"ok": True})
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")

    def test_invalid_format_reports_line(self) -> None:
        response = self.client.post("/api/check-format", json={"format": "# header\nabc:0 0 * * *:60"})

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["line"], 2)
        self.assertIn("abc", payload["message"])

    def test_missing_format(self) -> None:
        response = self.client.post("/api/check-format", json={})

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.get_json()["ok"])

    def test_body_must_be_an_object(self) -> None:
        response = self.client.post("/api/check-format", json=[1])

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.get_json()["ok"])


class TestNodeReservation(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        config_path = Path(self.temp_dir.name) / "nodes.yaml"
        config_path.write_text(CONFIG_YAML, encoding="utf-8")

        now = datetime(2026, 2, 25, 17, 1, tzinfo=timezone.utc)
        self.client = create_app(config_path, now_provider=lambda: now).test_client()

    def test_lists_nodes(self) -> None:
        payload = self.client.get("/api/nodes").get_json()

        self.assertEqual(payload["timezone"], "UTC")
        self.assertEqual(
            payload["nodes"],
            [
                {"name": "build-01", "executors": 4, "entries": 1},
                {"name": "idle", "executors": 1, "entries": 0},
            ],
        )

    def test_reservation_at_timestamp(self) -> None:
        timestamp = at(2026, 2, 25, 10, 0)
        response = self.client.get(f"/api/nodes/build-01/reservation?at={timestamp}")

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["reserved"], 2)
        self.assertEqual(payload["executors"], 4)
        self.assertEqual(payload["next_change"], at(2026, 2, 25, 17, 0))
        self.assertEqual(payload["requery_at"], at(2026, 2, 25, 17, 0))

    def test_reservation_defaults_to_clock(self) -> None:
        payload = self.client.get("/api/nodes/build-01/reservation").get_json()

        self.assertEqual(payload["at"], at(2026, 2, 25, 17, 1))
        self.assertEqual(payload["reserved"], 0)
        self.assertEqual(payload["next_change"], at(2026, 2, 26, 9, 0))

    def test_requery_is_pushed_past_window_start(self) -> None:
        start = at(2026, 2, 25, 9, 0)
        payload = self.client.get(f"/api/nodes/build-01/reservation?at={start}").get_json()

        self.assertEqual(payload["next_change"], start)
        self.assertEqual(payload["requery_at"], start + 60_000)

    def test_idle_node_never_changes(self) -> None:
        payload = self.client.get("/api/nodes/idle/reservation").get_json()

        self.assertEqual(payload["reserved"], 0)
        self.assertIsNone(payload["next_change"])
        self.assertIsNone(payload["requery_at"])

    def test_unknown_node(self) -> None:
        self.assertEqual(self.client.get("/api/nodes/nope/reservation").status_code, 404)

    def test_bad_timestamp(self) -> None:
        response = self.client.get("/api/nodes/build-01/reservation?at=tomorrow")

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.get_json()["ok"])

    def test_timestamp_out_of_range(self) -> None:
        response = self.client.get(f"/api/nodes/build-01/reservation?at={2**62}")

        self.assertEqual(response.status_code, 400)
        self.assertIn("out of range", response.get_json()["message"])

    def test_pattern_that_never_matches_is_unprocessable(self) -> None:
        config_path = Path(self.temp_dir.name) / "never.yaml"
        config_path.write_text('nodes:\n  - name: ghost\n    executors: 2\n    schedule: "1:0 0 30 2 *:60"\n', encoding="utf-8")
        client = create_app(config_path).test_client()

        response = client.get(f"/api/nodes/ghost/reservation?at={at(2026, 2, 25, 10, 0)}")

        self.assertEqual(response.status_code, 422)
        self.assertIn("no matching instant", response.get_json()["message"])


if __name__ == "__main__":
    unittest.main()
