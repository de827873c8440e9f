from __future__ import annotations

from pathlib import Path
import re


SQL_DIR = Path(__file__).with_name("sql")
IDENTIFIER_RE = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")


def load_sql(name: str) -> str:
    return (SQL_DIR / name).read_text(encoding="utf-8").strip()


def render_sql(name: str, *, table: str) -> str:
    if not IDENTIFIER_RE.match(table):
        raise ValueError(f"invalid table identifier: {table!r}")
    return load_sql(name).replace("{table}", table)
