from __future__ import annotations

import csv
import json
import subprocess
import sys
from pathlib import Path

import pytest

import generate_teams
from tests.utils import flat_rows, roster_row, write_roster

ROOT = Path(__file__).resolve().parents[1]


def _outputs(tmp_path: Path) -> list:
    return [
        "--out", str(tmp_path / "teams.json"),
        "--summary", str(tmp_path / "teams_report.txt"),
        "--lineups", str(tmp_path / "lineups.csv"),
        "--log", str(tmp_path / "decision_log.csv"),
    ]


def test_cli_writes_all_outputs(tmp_path: Path) -> None:
    roster = tmp_path / "roster.csv"
    write_roster(roster, flat_rows())

    proc = subprocess.run(
        [sys.executable, str(ROOT / "generate_teams.py"), "--roster", str(roster), *_outputs(tmp_path)],
        cwd=ROOT,
        capture_output=True,
        text=True,
    )
    assert proc.returncode == 0, proc.stderr
    assert "Tier: STRICT (stage STRICT)" in proc.stdout

    data = json.loads((tmp_path / "teams.json").read_text(encoding="utf-8"))
    assert data["tier"] == "STRICT"
    assert data["primary"]["score"] == 100
    assert data["primary"]["isFallback"] is False
    assert [p["id"] for p in data["primary"]["team1"]["players"]] == ["1", "10", "2", "3", "4"]
    assert data["comparison"]["reason"] == data["secondaryReason"]

    with (tmp_path / "lineups.csv").open(encoding="utf-8", newline="") as handle:
        assert len(list(csv.DictReader(handle))) == 20
    with (tmp_path / "decision_log.csv").open(encoding="utf-8", newline="") as handle:
        log = list(csv.DictReader(handle))
    assert [r["Status"] for r in log] == ["Accepted", "Selected"]
    assert "Tier: STRICT" in (tmp_path / "teams_report.txt").read_text(encoding="utf-8")


def test_cli_rejects_wrong_roster_size(tmp_path: Path) -> None:
    roster = tmp_path / "roster.csv"
    write_roster(roster, flat_rows(9))

    proc = subprocess.run(
        [sys.executable, str(ROOT / "generate_teams.py"), "--roster", str(roster), *_outputs(tmp_path)],
        cwd=ROOT,
        capture_output=True,
        text=True,
    )
    assert proc.returncode == 1
    assert "Select exactly 10 players (got 9)." in proc.stderr
    assert not (tmp_path / "teams.json").exists()
    assert (tmp_path / "decision_log.csv").exists()


def test_ids_pick_ten_from_larger_roster(tmp_path: Path) -> None:
    roster = tmp_path / "roster.csv"
    write_roster(roster, flat_rows(12))

    generate_teams.main(["--roster", str(roster), "--ids", "3,4,5,6,7,8,9,10,11,12", *_outputs(tmp_path)])

    data = json.loads((tmp_path / "teams.json").read_text(encoding="utf-8"))
    picked = {p["id"] for team in ("team1", "team2") for p in data["primary"][team]["players"]}
    assert picked == {str(i) for i in range(3, 13)}


def test_unknown_ids_exit_with_error(tmp_path: Path, capsys) -> None:
    roster = tmp_path / "roster.csv"
    write_roster(roster, flat_rows())

    with pytest.raises(SystemExit) as excinfo:
        generate_teams.main(["--roster", str(roster), "--ids", "1,2,99", *_outputs(tmp_path)])
    assert excinfo.value.code == 1
    assert "Unknown player ids: 99" in capsys.readouterr().err


def test_owner_from_config_file(tmp_path: Path) -> None:
    roster = tmp_path / "roster.csv"
    write_roster(roster, [roster_row(id=str(i), nickname=f"Player {i:02d}", rating=11 - i) for i in range(1, 11)])
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"OWNER_ID": "1", "SCORE": {"RATING": 12}}), encoding="utf-8")

    generate_teams.main(["--roster", str(roster), "--config", str(config), "--summary", "-",
                         "--out", str(tmp_path / "teams.json"), "--lineups", str(tmp_path / "lineups.csv"),
                         "--log", str(tmp_path / "decision_log.csv")])

    data = json.loads((tmp_path / "teams.json").read_text(encoding="utf-8"))
    assert data["failureStats"]["owner_bias"] > 0
    primary = data["primary"]
    owner_team, other = ("team1", "team2") if any(p["id"] == "1" for p in primary["team1"]["players"]) else ("team2", "team1")
    assert primary[owner_team]["totalRating"] < primary[other]["totalRating"]
    assert "- rating(1x12=12)" in primary["explanation"]


def test_numeric_owner_id_in_config(tmp_path: Path, capsys) -> None:
    roster = tmp_path / "roster.csv"
    write_roster(roster, [roster_row(id=str(i), nickname=f"Player {i:02d}", rating=11 - i) for i in range(1, 11)])
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"OWNER_ID": 1}), encoding="utf-8")

    generate_teams.main(["--roster", str(roster), "--config", str(config), *_outputs(tmp_path)])

    assert "[warn]" not in capsys.readouterr().err
    data = json.loads((tmp_path / "teams.json").read_text(encoding="utf-8"))
    assert data["failureStats"]["owner_bias"] > 0
    primary = data["primary"]
    owner_team, other = ("team1", "team2") if any(p["id"] == "1" for p in primary["team1"]["players"]) else ("team2", "team1")
    assert primary[owner_team]["totalRating"] < primary[other]["totalRating"]


def test_pop_owner_prefers_flag_and_returns_text() -> None:
    overrides = {"OWNER_ID": 10, "SCORE": {"RATING": 3}}
    assert generate_teams.pop_owner(None, overrides) == "10"
    assert overrides == {"SCORE": {"RATING": 3}}
    assert generate_teams.pop_owner(" 7 ", {"OWNER_ID": 10}) == "7"
    assert generate_teams.pop_owner(None, {}) is None


def test_suggest_ratings_prints_each_player(tmp_path: Path, capsys) -> None:
    roster = tmp_path / "roster.csv"
    rows = flat_rows()
    rows[0]["attributes"] = json.dumps({key: "high" for key in ("shooting", "control", "passing", "defense",
                                                                 "pace", "vision", "grit", "stamina")})
    write_roster(roster, rows)

    generate_teams.main(["--roster", str(roster), "--suggest-ratings", *_outputs(tmp_path)])

    out = capsys.readouterr().out
    assert "suggested= 8" in out
    assert out.count("suggested=") == 10
