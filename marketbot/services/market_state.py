from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from marketbot.config.settings import DISPLAY_TIMEZONE
from marketbot.core.errors import NoHistoryError, ParseError
from marketbot.core.pricing import RotationEntry


def local_today(timezone_name: str = DISPLAY_TIMEZONE) -> str:
    try:
        tz = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        tz = timezone.utc
    return datetime.now(tz).strftime("%Y-%m-%d")


@dataclass(frozen=True)
class RotationState:
    as_of: str
    active: tuple[RotationEntry, ...] = field(default_factory=tuple)
    retired: tuple[RotationEntry, ...] = field(default_factory=tuple)

    @property
    def active_items(self) -> set[str]:
        return {entry.item for entry in self.active}

    def as_of_date(self) -> date | None:
        try:
            return date.fromisoformat(self.as_of)
        except ValueError:
            return None

    def to_dict(self) -> dict:
        return {
            "as_of": self.as_of,
            "active": [entry.to_dict() for entry in self.active],
            "retired": [entry.to_dict() for entry in self.retired],
        }

    @classmethod
    def from_dict(cls, data: dict, *, default_as_of: str) -> RotationState:
        # "lastUpdated"/"buffed"/"reset" is the layout of the previous bot generation.
        as_of = str(data.get("as_of") or data.get("lastUpdated") or default_as_of)
        active_raw = data.get("active", data.get("buffed", []))
        retired_raw = data.get("retired", data.get("reset", []))
        return cls(
            as_of=as_of,
            active=_parse_entries(active_raw),
            retired=_parse_entries(retired_raw),
        )


def _parse_entries(raw: object) -> tuple[RotationEntry, ...]:
    if not isinstance(raw, list):
        return ()
    entries = (RotationEntry.from_raw(item) for item in raw)
    return tuple(entry for entry in entries if entry is not None)


def empty_state(as_of: str) -> RotationState:
    return RotationState(as_of=as_of)


def dump_state(state: RotationState) -> str:
    return json.dumps(state.to_dict(), indent=2, ensure_ascii=False) + "\n"


class StateHistory:
    """Current and previous rotation, kept as two JSON files.

    ``save`` demotes the current file verbatim to the previous slot, so
    ``previous`` always holds what ``current`` was before the last save.
    ``revert`` swaps the two files. Callers serialize access.
    """

    def __init__(
        self,
        state_path: str | Path,
        previous_path: str | Path,
        *,
        today: Callable[[], str] = local_today,
    ) -> None:
        self.state_path = Path(state_path)
        self.previous_path = Path(previous_path)
        self._today = today

    def _read(self, path: Path) -> RotationState | None:
        if not path.exists():
            return None
        raw = path.read_text(encoding="utf-8")
        try:
            data = json.loads(raw or "{}")
        except json.JSONDecodeError as exc:
            raise ParseError(f"{path.name} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ParseError(f"{path.name} must hold a JSON object.")
        return RotationState.from_dict(data, default_as_of=self._today())

    def load(self) -> RotationState:
        state = self._read(self.state_path)
        return state if state is not None else empty_state(self._today())

    def load_previous(self) -> RotationState:
        state = self._read(self.previous_path)
        return state if state is not None else empty_state(self._today())

    def has_previous(self) -> bool:
        return self.previous_path.exists()

    def save(self, state: RotationState) -> None:
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        if self.state_path.exists():
            self.previous_path.write_bytes(self.state_path.read_bytes())
        self.state_path.write_text(dump_state(state), encoding="utf-8")

    def revert(self) -> RotationState:
        if not self.previous_path.exists():
            raise NoHistoryError("No previous market state to revert to.")
        previous_raw = self.previous_path.read_bytes()
        restored = self._read(self.previous_path)
        if self.state_path.exists():
            self.previous_path.write_bytes(self.state_path.read_bytes())
        else:
            self.previous_path.unlink()
        self.state_path.write_bytes(previous_raw)
        return restored if restored is not None else empty_state(self._today())
