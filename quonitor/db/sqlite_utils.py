from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class IntegrityCheck:
    ok: bool
    details: str | None


def sqlite_db_path_from_url(url: str) -> Path | None:
    if not (url.startswith("sqlite+aiosqlite:") or url.startswith("sqlite:")):
        return None

    marker = ":///"
    marker_index = url.find(marker)
    if marker_index < 0:
        return None

    path = url[marker_index + len(marker) :]
    path = path.partition("?")[0]
    path = path.partition("#")[0]

    if not path or path == ":memory:":
        return None

    return Path(path).expanduser()


def ensure_sqlite_dir(url: str) -> None:
    path = sqlite_db_path_from_url(url)
    if path is None:
        return
    path.parent.mkdir(parents=True, exist_ok=True)


def check_sqlite_integrity(path: Path) -> IntegrityCheck:
    if not path.exists():
        return IntegrityCheck(ok=True, details=None)

    try:
        with sqlite3.connect(str(path)) as conn:
            rows = [row[0] for row in conn.execute("PRAGMA quick_check;").fetchall()]
    except sqlite3.DatabaseError as exc:
        return IntegrityCheck(ok=False, details=str(exc))

    if rows == ["ok"]:
        return IntegrityCheck(ok=True, details=None)
    if not rows:
        return IntegrityCheck(ok=False, details="quick_check returned no rows")
    return IntegrityCheck(ok=False, details="; ".join(str(row) for row in rows))
