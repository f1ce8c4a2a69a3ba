from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Callable

from marketbot.db.database import get_connection


def add_rotation_log(
    action: str,
    as_of: str,
    changed_count: int,
    *,
    actor_id: int = 0,
    details: dict | None = None,
    created_at: str | None = None,
    connection_factory: Callable = get_connection,
) -> None:
    with connection_factory() as conn:
        conn.execute(
            """
            INSERT INTO rotation_log (
                action,
                as_of,
                changed_count,
                actor_id,
                details,
                created_at
            )
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                action,
                as_of,
                int(changed_count),
                int(actor_id),
                json.dumps(details or {}, separators=(",", ":"), ensure_ascii=False),
                created_at or datetime.now(timezone.utc).isoformat(),
            ),
        )


def get_rotation_log(limit: int = 10, *, connection_factory: Callable = get_connection) -> list[dict]:
    with connection_factory() as conn:
        rows = conn.execute(
            """
            SELECT id, action, as_of, changed_count, actor_id, details, created_at
            FROM rotation_log
            ORDER BY id DESC
            LIMIT ?
            """,
            (max(1, int(limit)),),
        ).fetchall()
    out: list[dict] = []
    for row in rows:
        item = dict(row)
        try:
            item["details"] = json.loads(str(item.get("details") or "{}"))
        except json.JSONDecodeError:
            item["details"] = {}
        out.append(item)
    return out
