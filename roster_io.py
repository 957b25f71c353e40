#!/usr/bin/env python3
"""Roster input for the team generator.

Reads the people sheet (one row per person) either from a local CSV or from a
published spreadsheet CSV export, and turns rows into ``Player`` records.

Columns are matched case- and whitespace-insensitively:

* ``id`` – falls back to the 1-based row number
* ``nickname`` – display name (``name`` is used when it is empty); rows with
  no name, or named "unknown", are skipped
* ``role`` – GK/DEF/MID/ATT/FLEX, anything else becomes FLEX
* ``rating`` – clamped to 1..10, unparseable → 5
* ``gkWillingness`` – yes/low/no, anything else becomes "no"
* ``wantsWith`` / ``avoidsWith`` – pipe-delimited player ids
* ``attributes`` – JSON object of attribute → low/mid/high; missing or
  malformed values become "mid"
"""

from __future__ import annotations
import csv, io, json, ssl, urllib.parse, urllib.request
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import certifi

from team_engine import ATTRIBUTE_KEYS, ATTRIBUTE_LEVELS, GK_WILLINGNESS, ROLES, Player

SCRIPT_DIR = Path(__file__).resolve().parent

# ---------------------------- I/O ------------------------------------

def export_csv_url(doc_id: str, gid: str) -> str:
    base = f"https://docs.google.com/spreadsheets/d/{doc_id}/export"
    q = urllib.parse.urlencode({"format": "csv", "gid": gid})
    return f"{base}?{q}"


def download_if_needed(url: str, dest: Path, force: bool = False) -> Path:
    if dest.exists() and not force:
        return dest
    ctx = ssl.create_default_context(cafile=certifi.where())
    req = urllib.request.Request(url, headers={"User-Agent": "Mozilla/5.0 (TeamGenerator/1.0)"})
    with urllib.request.urlopen(req, context=ctx) as resp:
        data = resp.read()
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)
    return dest


def resolve_data_path(path: Path) -> Path:
    """Locate a data file relative to CWD or the script directory."""

    if path.exists():
        return path
    if not path.is_absolute():
        alt = SCRIPT_DIR / path
        if alt.exists():
            return alt
    return path


def trim(s) -> str:
    return ("" if s is None else str(s)).strip()


def split_pipe(s) -> List[str]:
    s = trim(s)
    return [x.strip() for x in s.split("|") if x.strip()] if s else []

# ------------------------ Field parsing -------------------------------

def normalize_key(key: str) -> str:
    return "".join(trim(key).lower().split())


def parse_role(value) -> str:
    role = trim(value).upper()
    return role if role in ROLES else "FLEX"


def parse_gk_willingness(value) -> str:
    level = trim(value).lower()
    return level if level in GK_WILLINGNESS else "no"


def parse_rating(value) -> int:
    try:
        num = int(float(trim(value) or "5"))
    except ValueError:
        return 5
    return max(1, min(10, num))


def parse_attributes(value) -> Dict[str, str]:
    levels = {key: "mid" for key in ATTRIBUTE_KEYS}
    if isinstance(value, dict):
        raw = value
    else:
        text = trim(value)
        if not text:
            return levels
        try:
            raw = json.loads(text)
        except json.JSONDecodeError:
            return levels
    if not isinstance(raw, dict):
        return levels
    for key in ATTRIBUTE_KEYS:
        level = raw.get(key)
        if level in ATTRIBUTE_LEVELS:
            levels[key] = level
    return levels


def player_from_row(row: Dict[str, object], index: int) -> Optional[Player]:
    normalized = {normalize_key(k): v for k, v in row.items() if k is not None}

    def get(key: str):
        return normalized.get(normalize_key(key))

    display = trim(get("nickname")) or trim(get("name"))
    if not display or display.lower() == "unknown":
        return None
    return Player(
        id=trim(get("id")) or str(index + 1),
        name=display,
        role=parse_role(get("role")),
        rating=parse_rating(get("rating")),
        attributes=parse_attributes(get("attributes")),
        gk_willingness=parse_gk_willingness(get("gkWillingness")),
        wants=frozenset(split_pipe(get("wantsWith"))),
        avoids=frozenset(split_pipe(get("avoidsWith"))),
    )


def players_from_rows(rows: Iterable[Dict[str, object]]) -> List[Player]:
    people: List[Player] = []
    for idx, row in enumerate(rows):
        player = player_from_row(row, idx)
        if player is not None:
            people.append(player)
    return people


def load_roster(path: Path) -> List[Player]:
    actual = resolve_data_path(Path(path))
    if not actual.exists():
        raise SystemExit(f"Missing file: {path}")
    text = actual.read_bytes().decode("utf-8-sig", errors="replace")
    return players_from_rows(csv.DictReader(io.StringIO(text)))


def select_players(people: List[Player], ids: Iterable[str]) -> List[Player]:
    """Pick players by id, in the order given."""
    by_id = {p.id: p for p in people}
    wanted = [trim(i) for i in ids if trim(i)]
    unknown = [i for i in wanted if i not in by_id]
    if unknown:
        raise ValueError(f"Unknown player ids: {', '.join(unknown)}")
    return [by_id[i] for i in wanted]
