"""Fixtures and helpers for team generator tests."""
from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from team_engine import Player

ROSTER_COLUMNS: Sequence[str] = (
    "id",
    "name",
    "nickname",
    "role",
    "rating",
    "gkWillingness",
    "wantsWith",
    "avoidsWith",
    "attributes",
)


def pid(i: int) -> str:
    return f"p{i:02d}"


def make_player(
    i: int,
    *,
    role: str = "FLEX",
    rating: int = 5,
    gk: str = "yes",
    wants: Iterable[int] = (),
    avoids: Iterable[int] = (),
    **levels: str,
) -> Player:
    """Build a ``Player`` with id ``pNN`` and name ``Player NN``."""

    return Player(
        id=pid(i),
        name=f"Player {i:02d}",
        role=role,
        rating=rating,
        attributes=dict(levels),
        gk_willingness=gk,
        wants=frozenset(pid(w) for w in wants),
        avoids=frozenset(pid(a) for a in avoids),
    )


def flat_roster(**overrides: Dict[str, object]) -> List[Player]:
    """Ten FLEX players rated 5, all happy to keep goal, no relationships.

    ``overrides`` maps ``"p03"``-style ids to ``make_player`` keyword args.
    """

    players = []
    for i in range(1, 11):
        kwargs = dict(overrides.get(pid(i), {}))
        players.append(make_player(i, **kwargs))
    return players


def team_ids(team: Iterable[Player]) -> List[str]:
    return sorted(p.id for p in team)


def roster_row(
    *,
    id: str,
    nickname: str,
    role: str = "FLEX",
    rating: int | str = 5,
    gk: str = "yes",
    wants: Iterable[str] = (),
    avoids: Iterable[str] = (),
    attributes: Dict[str, str] | str | None = None,
    name: str = "",
) -> Dict[str, str]:
    """Build a Dict row for ``roster.csv``."""

    row = {col: "" for col in ROSTER_COLUMNS}
    if isinstance(attributes, dict):
        attr_text = json.dumps(attributes)
    else:
        attr_text = attributes or ""
    row.update(
        {
            "id": id,
            "name": name,
            "nickname": nickname,
            "role": role,
            "rating": str(rating),
            "gkWillingness": gk,
            "wantsWith": "|".join(wants),
            "avoidsWith": "|".join(avoids),
            "attributes": attr_text,
        }
    )
    return row


def flat_rows(count: int = 10) -> List[Dict[str, str]]:
    return [roster_row(id=str(i), nickname=f"Player {i:02d}") for i in range(1, count + 1)]


def write_roster(path: Path, rows: Iterable[Dict[str, str]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=ROSTER_COLUMNS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
