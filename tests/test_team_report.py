from __future__ import annotations

import csv
from pathlib import Path

import team_engine as engine
import team_report as report
from tests.utils import flat_roster, make_player, pid


def _everyone_avoids():
    overrides = {pid(i): {"avoids": [j for j in range(1, 11) if j != i]} for i in range(1, 11)}
    return engine.generate_teams(flat_roster(**overrides))


def test_flat_report_sections() -> None:
    text = engine.generate_teams(flat_roster()).primary.report
    lines = text.splitlines()
    assert lines[0] == "Analysis (Score: 100)"
    for section in ("[Details]", "[Balance]", "[Emergency GK]", "[Attack]", "[Lineups]", "[Social]"):
        assert section in lines
    assert (
        "- Score formula: 100 - rating(0x10=0) - attrs(0x5=0) - pace(0x10=0) - stamina(0x8=0)"
        " - defense(0x5=0) + gkPref(0) + attackers(0) = 100."
    ) in lines
    assert "- Current score status: 100 (highly balanced)." in lines
    assert "- Rating: T1 (25) vs T2 (25) -> Diff: 0 -> Favors: Even" in lines
    assert "- Pace: T1 (0.0) vs T2 (0.0) -> Diff: 0.0 -> Favors: Even" in lines
    assert "- Status: PASS (emergency GK condition satisfied)." in lines
    assert "- Soft yes balance: yes diff 0, adjustment 0." in lines
    assert "- Social Satisfaction: 100% (Wants: 0/0, Dislikes: 0/0)" in lines
    assert "- Met wants links: No met links" in lines
    assert "- Met dislikes links: No met dislikes" in lines


def test_report_marks_favoured_side_and_rounds_score() -> None:
    text = engine.generate_teams(flat_roster(p01={"shooting": "high"})).primary.report
    assert text.startswith("Analysis (Score: 93)")
    assert "- Shooting: T1 (1.5) vs T2 (0.0) -> Diff: 1.5 -> Favors: T1" in text
    assert "= 92.5." in text


def test_report_skips_soft_keeper_balance_when_both_sides_have_gk() -> None:
    roster = flat_roster(p01={"role": "GK"}, p02={"role": "GK"})
    text = engine.generate_teams(roster).primary.report
    assert "- Soft yes balance: not applied (both teams have a GK role)." in text


def test_social_hard_fallback_note() -> None:
    roster = flat_roster(p01={"role": "GK"}, p02={"role": "GK"}, p03={"role": "GK"})
    text = engine.generate_teams(roster).primary.report
    assert "- FALLBACK USED: role and goalkeeper rules dropped; avoids and strict wants kept." in text


def test_absolute_fallback_report() -> None:
    text = _everyone_avoids().primary.report
    assert text.startswith("Analysis (Score: ")
    assert "- FALLBACK USED: staged constraints could not be met." in text
    assert "- Social Conflicts: 100%" in text
    assert "- Role Issues: 0%" in text
    assert "- Teams generated using Power Rating (Best Fit, ignoring constraints)." in text
    assert "- Selected GK willingness: yes=10, low=0, no=0." in text
    assert "- Status in fallback split: PASS" in text
    assert "- Social Satisfaction: 56% (Wants: 0/0, Dislikes: 50/90)" in text


def test_met_links_mark_mutual_and_one_way() -> None:
    team1 = [
        make_player(1, wants=[2], avoids=[6]),
        make_player(2, wants=[1]),
        make_player(3, wants=[4]),
        make_player(4),
        make_player(5),
    ]
    team2 = [
        make_player(6, wants=[1], avoids=[1]),
        make_player(7, avoids=[2]),
        make_player(8, avoids=[9]),
        make_player(9),
        make_player(10),
    ]
    assert report.met_wants_links(team1, team2) == ["Player 01 <-> Player 02", "Player 03 -> Player 04"]
    assert report.met_avoid_links(team1, team2) == ["Player 01 <!> Player 06", "Player 07 !> Player 02"]


def test_format_lineup_orders_by_role_then_name() -> None:
    players = [
        engine.Player(id="1", name="Zed", role="ATT"),
        engine.Player(id="2", name="Bob", role="GK"),
        engine.Player(id="3", name="amy", role="FLEX"),
        engine.Player(id="4", name="Cal", role="DEF"),
        engine.Player(id="5", name="Ann", role="FLEX"),
    ]
    assert report.format_lineup(players) == "[GK] Bob [FLEX] amy [FLEX] Ann [DEF] Cal [ATT] Zed"


def test_round_half_up() -> None:
    assert report.round_half_up(2.5) == 3
    assert report.round_half_up(-2.5) == -2
    assert report.round_half_up(55.5556) == 56
    assert report.round_half_up(66.4) == 66


def test_score_labels() -> None:
    cfg = engine.build_config()
    assert report.score_label(70, cfg) == "highly balanced"
    assert report.score_label(69.9, cfg) == "balanced"
    assert report.score_label(0, cfg) == "playable but imbalanced"
    assert report.score_label(-1, cfg) == "imbalanced"


def test_write_lineups(tmp_path: Path) -> None:
    result = engine.generate_teams(flat_roster(p03={"role": "GK"}))
    out = tmp_path / "out" / "lineups.csv"
    report.write_lineups(result, out)
    with out.open(encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 20
    assert [r["Option"] for r in rows].count("primary") == 10
    assert [r["Option"] for r in rows].count("secondary") == 10
    primary_t1 = [r for r in rows if r["Option"] == "primary" and r["Team"] == "T1"]
    assert primary_t1[0]["Id"] == "p03"
    assert primary_t1[0]["Role"] == "GK"


def test_summary_lines_for_strict_result() -> None:
    lines = report.summary_lines(engine.generate_teams(flat_roster()))
    assert lines[1] == "Tier: STRICT (stage STRICT)"
    assert lines[2] == "Option 1: score=100, rating T1=25 vs T2=25, social=100%"
    assert "  • Moved to T1: Player 06" in lines
    assert "  • Moved to T2: Player 05" in lines
    assert not any(line.startswith("Rejected splits") for line in lines)


def test_summary_lines_for_absolute_fallback() -> None:
    lines = report.summary_lines(_everyone_avoids())
    assert lines[1] == "Tier: ABSOLUTE_FALLBACK (stage FALLBACK)"
    assert lines[2].endswith("[fallback]")
    assert "Option 2: none (No second option available under current constraints.)" in lines
    # four staged tiers, both sides of every split
    assert "Rejected splits by rule: social=2016" in lines


def test_write_summary(tmp_path: Path, monkeypatch) -> None:
    result = engine.generate_teams(flat_roster())
    out = tmp_path / "teams_report.txt"
    report.write_summary(result, out)
    text = out.read_text(encoding="utf-8")
    assert text.startswith("Team generation report")
    assert text.count("Analysis (Score: 100)") == 2

    monkeypatch.chdir(tmp_path)
    report.write_summary(result, Path("-"))
    assert not (tmp_path / "-").exists()
