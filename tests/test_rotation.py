import sqlite3
import tempfile
import unittest
from pathlib import Path

from marketbot.core.errors import DocumentError, NoHistoryError
from marketbot.core.pricing import BasePriceRecord, RotationEntry
from marketbot.db import get_rotation_log, init_db
from marketbot.services.catalog import CatalogCache
from marketbot.services.market_state import RotationState, StateHistory
from marketbot.services.rotation import (
    RotationEngine,
    market_marker,
    perform_revert,
    perform_rotation,
    rotation_due,
)

FERMIER = """pnjs:
  "§eFermier":
    trades:
      - WHEAT:
          - 1
          - GOLD_NUGGET:
              100
      - STRING:
          - 1
          - GOLD_NUGGET:
              2
      - DIRT:
          - 33
          - GOLD_NUGGET:
              1
      - CARROT:
          - 1
          - GOLD_NUGGET:
              10
  "§eMarché Dynamique":
    title: Dynamique
    trades:
"""

OLD_SECTION = """      - OLD_ITEM:
          - 1
          - GOLD_NUGGET:
              1
"""

FIRST_SECTION = """      - WHEAT:
          - 1
          - GOLD_NUGGET:
              130
      - STRING:
          - 16
          - EMERALD:
              42
"""

SECOND_SECTION = """      - CARROT:
          - 1
          - GOLD_NUGGET:
              13
"""

TAIL = """
  "§eL’Arboriste":
    trades:
      - OAK_LOG:
          - 16
          - GOLD_NUGGET:
              5
"""

BASE_PRICES = {
    "WHEAT": BasePriceRecord("WHEAT", 100),
    "STRING": BasePriceRecord("STRING", 2, "EMERALD"),
    "DIRT": BasePriceRecord("DIRT", 1, "GOLD_NUGGET", 33),
    "CARROT": BasePriceRecord("CARROT", 10),
    "OAK_LOG": BasePriceRecord("OAK_LOG", 5),
}


def _first(n: int) -> int:
    return 0


class RotationEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.catalog_path = self.root / "config.yml"
        self.catalog_path.write_bytes((FERMIER + OLD_SECTION + TAIL).encode("utf-8"))
        self.today = "2026-03-01"
        self.history = StateHistory(
            self.root / "market-state.json",
            self.root / "market-state-previous.json",
            today=lambda: self.today,
        )
        self.engine = self._engine()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _engine(self, **overrides) -> RotationEngine:
        options = {
            "catalog_path": self.catalog_path,
            "history": self.history,
            "base_prices": lambda: dict(BASE_PRICES),
            "rotation_size": 2,
            "randbelow": _first,
            "today": lambda: self.today,
        }
        options.update(overrides)
        return RotationEngine(**options)

    def _document(self) -> str:
        return self.catalog_path.read_bytes().decode("utf-8")

    def test_marker_quotes_the_merchant_name(self) -> None:
        self.assertEqual(market_marker("§eMarché Dynamique"), '"§eMarché Dynamique":')

    def test_rotate_rewrites_only_the_market_section(self) -> None:
        result = self.engine.rotate()

        self.assertEqual(self._document(), FERMIER + FIRST_SECTION + TAIL)
        self.assertEqual(result.changed_count, 2)
        self.assertEqual(
            result.state,
            RotationState(
                as_of="2026-03-01",
                active=(
                    RotationEntry("WHEAT", 1, 130, "GOLD_NUGGET"),
                    RotationEntry("STRING", 16, 42, "EMERALD"),
                ),
                retired=(),
            ),
        )
        self.assertEqual(self.history.load(), result.state)

    def test_second_rotation_retires_and_skips_rejected_items(self) -> None:
        first = self.engine.rotate()
        self.today = "2026-03-08"
        second = self.engine.rotate()

        # DIRT cannot be doubled past 64, so only CARROT is left to buff.
        self.assertEqual(self._document(), FERMIER + SECOND_SECTION + TAIL)
        self.assertEqual(second.changed_count, 1)
        self.assertEqual(second.state.retired, first.state.active)
        self.assertEqual(second.state.as_of, "2026-03-08")
        self.assertTrue(first.state.active_items.isdisjoint(second.state.active_items))

    def test_revert_restores_document_and_state(self) -> None:
        first = self.engine.rotate()
        after_first = self._document()
        self.today = "2026-03-08"
        self.engine.rotate()

        restored = self.engine.revert()
        self.assertEqual(restored, first.state)
        self.assertEqual(self._document(), after_first)
        self.assertEqual(self.engine.current_state(), first.state)
        self.assertEqual(self.engine.previous_state().as_of, "2026-03-08")

    def test_revert_fills_missing_currency(self) -> None:
        self.history.save(RotationState(as_of="2026-02-01", active=(RotationEntry("WHEAT", 1, 130, ""),)))
        self.engine.rotate()
        self.engine.revert()
        self.assertIn("      - WHEAT:\n          - 1\n          - GOLD_NUGGET:\n              130\n", self._document())

    def test_revert_without_history(self) -> None:
        self.engine.rotate()
        before = self._document()
        self.assertEqual(self.engine.previous_state(), RotationState(as_of="2026-03-01"))
        with self.assertRaises(NoHistoryError):
            self.engine.revert()
        self.assertEqual(self._document(), before)

    def test_failed_state_save_keeps_new_document(self) -> None:
        self.engine.rotate()
        state_bytes = self.history.state_path.read_bytes()
        failing = FailingSaveHistory(self.history.state_path, self.history.previous_path, today=lambda: self.today)
        self.today = "2026-03-08"

        with self.assertRaises(OSError):
            self._engine(history=failing).rotate()

        self.assertEqual(self._document(), FERMIER + SECOND_SECTION + TAIL)
        self.assertEqual(self.history.state_path.read_bytes(), state_bytes)
        self.assertFalse(self.history.has_previous())
        self.assertEqual(self.history.load().as_of, "2026-03-01")

    def test_missing_market_section_writes_nothing(self) -> None:
        original = (FERMIER + OLD_SECTION + TAIL).replace("Marché Dynamique", "Autre Marché")
        self.catalog_path.write_bytes(original.encode("utf-8"))
        with self.assertRaises(DocumentError):
            self.engine.rotate()
        self.assertEqual(self._document(), original)
        self.assertFalse(self.history.state_path.exists())

    def test_empty_pool_clears_the_section(self) -> None:
        engine = self._engine(base_prices=dict)
        result = engine.rotate()
        self.assertEqual(result.changed_count, 0)
        self.assertEqual(self._document(), FERMIER + TAIL)

    def test_rotation_invalidates_catalog_cache(self) -> None:
        cache = CatalogCache(60, clock=lambda: 0.0)
        engine = self._engine(cache=cache)
        engine.rotate()
        loads: list[int] = []
        cache.get(str(self.catalog_path), lambda: loads.append(1) or {})
        self.assertEqual(loads, [1])


class FailingSaveHistory(StateHistory):
    def save(self, state: RotationState) -> None:
        raise OSError("disk full")


class RotationDueTests(unittest.TestCase):
    def test_schedule(self) -> None:
        state = RotationState(as_of="2026-03-01")
        self.assertFalse(rotation_due(state, "2026-04-01", 0, has_state=True))
        self.assertTrue(rotation_due(state, "2026-03-01", 7, has_state=False))
        self.assertFalse(rotation_due(state, "2026-03-07", 7, has_state=True))
        self.assertTrue(rotation_due(state, "2026-03-08", 7, has_state=True))
        self.assertTrue(rotation_due(RotationState(as_of="?"), "2026-03-08", 7, has_state=True))


class AuditLogTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        catalog_path = root / "config.yml"
        catalog_path.write_bytes((FERMIER + OLD_SECTION + TAIL).encode("utf-8"))
        self.engine = RotationEngine(
            catalog_path=catalog_path,
            history=StateHistory(root / "s.json", root / "p.json", today=lambda: "2026-03-01"),
            base_prices=lambda: dict(BASE_PRICES),
            rotation_size=1,
            randbelow=_first,
            today=lambda: "2026-03-01",
        )
        self.conn = sqlite3.connect(":memory:")
        self.conn.row_factory = sqlite3.Row
        init_db(self.conn)

    def tearDown(self) -> None:
        self.conn.close()
        self._tmp.cleanup()

    def _factory(self) -> sqlite3.Connection:
        return self.conn

    def test_operations_are_logged(self) -> None:
        perform_rotation(actor_id=42, engine=self.engine, connection_factory=self._factory)
        perform_rotation(engine=self.engine, connection_factory=self._factory)
        perform_revert(actor_id=42, engine=self.engine, connection_factory=self._factory)

        rows = get_rotation_log(10, connection_factory=self._factory)
        self.assertEqual([row["action"] for row in rows], ["revert", "rotate", "rotate"])
        self.assertEqual(rows[0]["actor_id"], 42)
        self.assertEqual(rows[0]["details"], {"active": ["WHEAT"]})
        self.assertEqual(rows[1]["actor_id"], 0)
        self.assertEqual(rows[1]["details"], {"active": ["STRING"], "retired": ["WHEAT"]})

    def test_only_if_is_checked_under_the_lock(self) -> None:
        seen: list[RotationEngine] = []

        def never(engine: RotationEngine) -> bool:
            seen.append(engine)
            return False

        before = self.engine.catalog_path.read_bytes()
        result = perform_rotation(engine=self.engine, only_if=never, connection_factory=self._factory)
        self.assertIsNone(result)
        self.assertEqual(seen, [self.engine])
        self.assertEqual(self.engine.catalog_path.read_bytes(), before)
        self.assertEqual(get_rotation_log(10, connection_factory=self._factory), [])

        result = perform_rotation(engine=self.engine, only_if=lambda engine: True, connection_factory=self._factory)
        self.assertEqual(result.changed_count, 1)

    def test_failed_revert_is_not_logged(self) -> None:
        with self.assertRaises(NoHistoryError):
            perform_revert(engine=self.engine, connection_factory=self._factory)
        self.assertEqual(get_rotation_log(10, connection_factory=self._factory), [])


if __name__ == "__main__":
    unittest.main()
