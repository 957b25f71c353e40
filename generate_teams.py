#!/usr/bin/env python3
"""Generate two balanced five-a-side teams from a roster CSV.

Reads ``roster.csv`` (optionally refreshed from a published spreadsheet),
picks the ten players named by ``--ids`` (or the whole roster when it has
exactly ten rows) and emits:

* ``teams.json`` – primary/secondary options, comparison and failure tallies
* ``teams_report.txt`` – human-readable summary plus the analysis reports
* ``lineups.csv`` – one row per player per option
* ``decision_log.csv`` – one row per stage attempt
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List

import rating_suggestion
import roster_io
import team_engine
import team_report


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Split ten players into two balanced teams",
                                 formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    ap.add_argument("--roster", default="roster.csv", type=Path, help="People CSV (one row per person)")
    ap.add_argument("--ids", default="", help="Comma-separated ids of the ten selected players")
    ap.add_argument("--owner", default=None, help="Player id that must never land on the stronger side")
    ap.add_argument("--config", type=Path, help="Optional JSON file with CONFIG overrides (may carry OWNER_ID)")
    ap.add_argument("--sheet-doc", default="", help="Spreadsheet id to download the roster from")
    ap.add_argument("--sheet-gid", default="0", help="Sheet gid used with --sheet-doc")
    ap.add_argument("--force-refresh", action="store_true", help="Re-download the roster even when cached")
    ap.add_argument("--out", default="teams.json", type=Path)
    ap.add_argument("--summary", default="teams_report.txt", type=Path, help="Plaintext report (set to '-' to skip)")
    ap.add_argument("--lineups", default="lineups.csv", type=Path)
    ap.add_argument("--log", default="decision_log.csv", type=Path)
    ap.add_argument("--suggest-ratings", action="store_true", help="Print attribute-based rating suggestions")
    return ap.parse_args(argv)


def load_overrides(path: Path | None) -> dict:
    if not path:
        return {}
    cfg_path = roster_io.resolve_data_path(Path(path))
    if not cfg_path.exists():
        raise SystemExit(f"Missing file: {path}")
    return json.loads(cfg_path.read_text(encoding="utf-8"))


def pop_owner(owner: str | None, overrides: dict) -> str | None:
    """``--owner`` wins over ``OWNER_ID`` from the config; ids are compared as text."""
    configured = overrides.pop("OWNER_ID", None)
    return roster_io.trim(owner or configured) or None


def pick_roster(people: List[team_engine.Player], ids: str) -> List[team_engine.Player]:
    if ids.strip():
        return roster_io.select_players(people, ids.split(","))
    return list(people)


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    overrides = load_overrides(args.config)
    owner = pop_owner(args.owner, overrides)

    if args.sheet_doc:
        url = roster_io.export_csv_url(args.sheet_doc, args.sheet_gid)
        roster_io.download_if_needed(url, args.roster, force=args.force_refresh)

    people = roster_io.load_roster(args.roster)
    try:
        selected = pick_roster(people, args.ids)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)

    if owner and not any(p.id == owner for p in selected):
        print(f"[warn] Owner id {owner} is not among the selected players; owner rule skipped", file=sys.stderr)

    if args.suggest_ratings:
        for p in selected:
            print(f"{p.id:>4} {p.name:<20} rating={p.rating:>2} suggested={rating_suggestion.suggested_rating(p.attributes):>2}")

    logger = team_engine.GenerationLogger()
    result = team_engine.generate_teams(selected, owner_id=owner, overrides=overrides, logger=logger)
    logger.write_csv(args.log)
    if result is None:
        print(f"Select exactly {team_engine.ROSTER_SIZE} players (got {len(selected)}).", file=sys.stderr)
        sys.exit(1)

    args.out.parent.mkdir(parents=True, exist_ok=True)
    with args.out.open("w", encoding="utf-8") as handle:
        json.dump(result.to_dict(), handle, indent=2, ensure_ascii=False)
    team_report.write_lineups(result, args.lineups)
    team_report.write_summary(result, args.summary)

    for line in team_report.summary_lines(result):
        print(line)
    print(f"Wrote {args.out} | {args.lineups} | {args.log}"
          f"{'' if str(args.summary) == '-' else f' | {args.summary}'}")


if __name__ == "__main__":
    main()
