import json
import tempfile
import unittest
from pathlib import Path

from marketbot.core.errors import NoHistoryError, ParseError
from marketbot.core.pricing import RotationEntry
from marketbot.services.market_state import RotationState, StateHistory, dump_state, local_today

STRING = RotationEntry(item="STRING", quantity=16, price=42, currency="GOLD_NUGGET")
DIAMOND = RotationEntry(item="DIAMOND", quantity=1, price=130, currency="GOLD_NUGGET")


class RotationStateTests(unittest.TestCase):
    def test_round_trips_through_dict(self) -> None:
        state = RotationState(as_of="2026-03-01", active=(STRING,), retired=(DIAMOND,))
        self.assertEqual(RotationState.from_dict(state.to_dict(), default_as_of="x"), state)
        self.assertEqual(state.active_items, {"STRING"})

    def test_reads_legacy_layout(self) -> None:
        data = {
            "lastUpdated": "2025-12-24",
            "buffed": [{"item": "STRING", "quantity": 16, "price": 42, "type": "GOLD_NUGGET"}],
            "reset": ["DIAMOND", {"bad": True}],
        }
        state = RotationState.from_dict(data, default_as_of="2026-01-01")
        self.assertEqual(state.as_of, "2025-12-24")
        self.assertEqual(state.active, (STRING,))
        self.assertEqual(state.retired, (RotationEntry("DIAMOND", 1, 0, ""),))

    def test_missing_date_uses_default(self) -> None:
        state = RotationState.from_dict({}, default_as_of="2026-01-01")
        self.assertEqual(state, RotationState(as_of="2026-01-01"))
        self.assertEqual(state.as_of_date().isoformat(), "2026-01-01")
        self.assertIsNone(RotationState(as_of="someday").as_of_date())

    def test_dump_is_readable_json(self) -> None:
        text = dump_state(RotationState(as_of="2026-03-01", active=(STRING,)))
        self.assertTrue(text.endswith("}\n"))
        self.assertEqual(json.loads(text)["active"][0]["currency"], "GOLD_NUGGET")

    def test_local_today_falls_back_to_utc(self) -> None:
        self.assertEqual(len(local_today("Not/AZone")), 10)


class StateHistoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        self.history = StateHistory(
            root / "market-state.json",
            root / "market-state-previous.json",
            today=lambda: "2026-03-01",
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_load_without_files(self) -> None:
        self.assertEqual(self.history.load(), RotationState(as_of="2026-03-01"))
        self.assertEqual(self.history.load_previous(), RotationState(as_of="2026-03-01"))
        self.assertFalse(self.history.has_previous())

    def test_first_save_leaves_no_previous(self) -> None:
        self.history.save(RotationState(as_of="2026-03-01", active=(STRING,)))
        self.assertFalse(self.history.has_previous())
        self.assertEqual(self.history.load_previous(), RotationState(as_of="2026-03-01"))
        with self.assertRaises(NoHistoryError):
            self.history.revert()

    def test_save_demotes_current_bytes_verbatim(self) -> None:
        hand_written = b'{"lastUpdated": "2025-12-24",   "buffed": ["STRING"]}'
        self.history.state_path.write_bytes(hand_written)
        self.history.save(RotationState(as_of="2026-03-01", active=(DIAMOND,)))
        self.assertEqual(self.history.previous_path.read_bytes(), hand_written)
        self.assertEqual(self.history.load().active, (DIAMOND,))

    def test_revert_swaps_current_and_previous(self) -> None:
        first = RotationState(as_of="2026-02-01", active=(STRING,))
        second = RotationState(as_of="2026-03-01", active=(DIAMOND,), retired=(STRING,))
        self.history.save(first)
        self.history.save(second)

        restored = self.history.revert()
        self.assertEqual(restored, first)
        self.assertEqual(self.history.load(), first)
        self.assertEqual(self.history.load_previous(), second)

        self.history.revert()
        self.assertEqual(self.history.load(), second)

    def test_revert_without_current_consumes_previous(self) -> None:
        self.history.previous_path.write_text(dump_state(RotationState(as_of="2026-02-01")), encoding="utf-8")
        restored = self.history.revert()
        self.assertEqual(restored.as_of, "2026-02-01")
        self.assertFalse(self.history.has_previous())
        self.assertTrue(self.history.state_path.exists())

    def test_corrupt_previous_is_not_restored(self) -> None:
        self.history.save(RotationState(as_of="2026-03-01", active=(STRING,)))
        current = self.history.state_path.read_bytes()
        self.history.previous_path.write_text("{broken", encoding="utf-8")
        with self.assertRaises(ParseError):
            self.history.revert()
        self.assertEqual(self.history.state_path.read_bytes(), current)

    def test_non_object_state_raises(self) -> None:
        self.history.state_path.write_text("[]", encoding="utf-8")
        with self.assertRaises(ParseError):
            self.history.load()


if __name__ == "__main__":
    unittest.main()
