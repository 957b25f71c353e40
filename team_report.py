#!/usr/bin/env python3
"""Render generated teams for people and for the presentation layer.

The analysis text is section-tagged (``[Details]``, ``[Balance]``,
``[Emergency GK]``, ``[Attack]``, ``[Lineups]``, ``[Social]``) and uses
``T1``/``T2``/``Even`` plus ``[ROLE]`` tokens so a UI can style it. The CSV and
summary writers back the ``lineups.csv`` and ``teams_report.txt`` outputs.
"""

from __future__ import annotations

import csv
import math
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

ROLE_PRIORITY = {"GK": 0, "FLEX": 1, "DEF": 2, "MID": 3, "ATT": 4}

BALANCE_ORDER = (
    ("Shooting", "shooting"),
    ("Control", "control"),
    ("Passing", "passing"),
    ("Defense", "defense"),
    ("Pace", "pace"),
    ("Vision", "vision"),
    ("Grit", "grit"),
    ("Stamina", "stamina"),
)

LINEUP_FIELDS = ("Option", "Stage", "Team", "Id", "Name", "Role", "Rating", "GKWillingness")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"


def signed(value: float) -> str:
    text = fmt(value)
    return f"+{text}" if value > 0 else text


def favored(team1_value: float, team2_value: float) -> str:
    if team1_value > team2_value:
        return "T1"
    if team2_value > team1_value:
        return "T2"
    return "Even"


def score_label(score: float, cfg: dict) -> str:
    for threshold, label in cfg.get("SCORE_LABELS") or []:
        if score >= threshold:
            return label
    return cfg.get("SCORE_LABEL_FLOOR", "imbalanced")


def format_lineup(players: Iterable) -> str:
    ordered = sorted(players, key=lambda p: (ROLE_PRIORITY.get(p.role, 99), p.name.casefold(), p.name))
    return " ".join(f"[{p.role}] {p.name}" for p in ordered)

# -------------------- Social links --------------------

def _same_side(team1: Sequence, team2: Sequence) -> Dict[str, int]:
    side_of = {p.id: 1 for p in team1}
    side_of.update({p.id: 2 for p in team2})
    return side_of


def _met_links(team1: Sequence, team2: Sequence, attr: str, want_same: bool, mutual_sep: str, one_way_sep: str) -> List[str]:
    side_of = _same_side(team1, team2)
    by_id = {p.id: p for p in (*team1, *team2)}
    links: List[str] = []
    seen = set()
    for source in (*team1, *team2):
        for target_id in sorted(getattr(source, attr)):
            target = by_id.get(target_id)
            if target is None or target_id == source.id:
                continue
            same = side_of[source.id] == side_of[target_id]
            if same != want_same:
                continue
            if source.id in getattr(target, attr):
                key = tuple(sorted((source.id, target_id)))
                text = f"{source.name} {mutual_sep} {target.name}"
            else:
                key = (source.id, "->", target_id)
                text = f"{source.name} {one_way_sep} {target.name}"
            if key in seen:
                continue
            seen.add(key)
            links.append(text)
    return links


def met_wants_links(team1: Sequence, team2: Sequence) -> List[str]:
    return _met_links(team1, team2, "wants", True, "<->", "->")


def met_avoid_links(team1: Sequence, team2: Sequence) -> List[str]:
    return _met_links(team1, team2, "avoids", False, "<!>", "!>")

# -------------------- Analysis text --------------------

def _keeper_line(label: str, keepers) -> str:
    return (
        f"- {label}: GK roles={keepers.gk_roles}, yes={keepers.yes}, low={keepers.low}, "
        f"no={keepers.no}, capable={keepers.capable}"
    )


def _emergency_pass(breakdown, minimum: int) -> bool:
    return all(
        stats.keepers.gk_roles > 0 or stats.keepers.capable >= minimum
        for stats in (breakdown.stats1, breakdown.stats2)
    )


def _social_section(team1: Sequence, team2: Sequence, social) -> List[str]:
    wants = met_wants_links(team1, team2)
    avoids = met_avoid_links(team1, team2)
    return [
        "[Social]",
        f"- Social Satisfaction: {social.percentage}% (Wants: {social.wants_met}/{social.wants_total}, "
        f"Dislikes: {social.avoids_met}/{social.avoids_total})",
        f"- Met wants links: {', '.join(wants) if wants else 'No met links'}",
        f"- Met dislikes links: {', '.join(avoids) if avoids else 'No met dislikes'}",
    ]


def render_analysis(breakdown, team1: Sequence, team2: Sequence, social, cfg: dict, *, notes: Sequence[str] = ()) -> str:
    s1, s2 = breakdown.stats1, breakdown.stats2
    pen = breakdown.penalties
    w = breakdown.weights
    score = breakdown.score
    keepers = breakdown.keepers
    attackers = breakdown.attackers
    minimum = int(cfg["EMERGENCY_GK_MIN_CAPABLE"])

    lines = [f"Analysis (Score: {round_half_up(score)})", "", "[Details]"]
    lines.extend(f"- {note}" for note in notes)
    lines.append(
        f"- Score formula: {fmt(breakdown.base)}"
        f" - rating({fmt(breakdown.rating_diff)}x{fmt(w['RATING'])}={fmt(pen['rating'])})"
        f" - attrs({fmt(breakdown.attribute_diff_total)}x{fmt(w['ATTRIBUTES'])}={fmt(pen['attributes'])})"
        f" - pace({fmt(breakdown.diff('pace'))}x{fmt(w['PACE'])}={fmt(pen['pace'])})"
        f" - stamina({fmt(breakdown.diff('stamina'))}x{fmt(w['STAMINA'])}={fmt(pen['stamina'])})"
        f" - defense({fmt(breakdown.diff('defense'))}x{fmt(w['DEFENSE'])}={fmt(pen['defense'])})"
        f" + gkPref({signed(keepers.adjustment)}) + attackers({signed(attackers.adjustment)}) = {fmt(score)}."
    )
    lines.append(f"- Current score status: {round_half_up(score)} ({score_label(score, cfg)}).")
    lines.append("- Favors marker: each balance line shows Favors: T1, T2, or Even.")

    lines += [
        "",
        "[Balance]",
        f"- Rating: T1 ({s1.rating}) vs T2 ({s2.rating}) -> Diff: {breakdown.rating_diff}"
        f" -> Favors: {favored(s1.rating, s2.rating)}",
    ]
    for label, key in BALANCE_ORDER:
        a, b = s1.attributes[key], s2.attributes[key]
        lines.append(
            f"- {label}: T1 ({a:.1f}) vs T2 ({b:.1f}) -> Diff: {abs(a - b):.1f} -> Favors: {favored(a, b)}"
        )

    status = (
        "PASS (emergency GK condition satisfied)."
        if _emergency_pass(breakdown, minimum)
        else f"FAIL (teams without GK role must have >= {minimum} capable keepers)."
    )
    if not keepers.applied:
        soft = "- Soft yes balance: not applied (both teams have a GK role)."
    elif keepers.weaker == "Even":
        soft = f"- Soft yes balance: yes diff {keepers.yes_imbalance}, adjustment {signed(keepers.adjustment)}."
    else:
        soft = (
            f"- Soft yes balance: yes diff {keepers.yes_imbalance}, weaker side {keepers.weaker}, "
            f"low support {'yes' if keepers.weaker_has_low else 'no'}, adjustment {signed(keepers.adjustment)}."
        )
    lines += [
        "",
        "[Emergency GK]",
        f"- Rule when no GK role: each team needs >= {minimum} capable keepers (yes + low).",
        _keeper_line("T1", s1.keepers),
        _keeper_line("T2", s2.keepers),
        f"- Status: {status}",
        soft,
    ]

    spread = f"- Spread: ATT diff {attackers.imbalance}, total {attackers.total}"
    if attackers.heavier != "Even":
        spread += (
            f", heavier side {attackers.heavier}, "
            f"defender cover {'yes' if attackers.heavier_has_defender else 'no'}"
        )
    spread += f", adjustment {signed(attackers.adjustment)}."
    lines += [
        "",
        "[Attack]",
        f"- T1: ATT={s1.attackers}, DEF={s1.defenders}",
        f"- T2: ATT={s2.attackers}, DEF={s2.defenders}",
        spread,
        "",
        "[Lineups]",
        f"- T1: {format_lineup(team1)}",
        f"- T2: {format_lineup(team2)}",
        "",
    ]
    lines += _social_section(team1, team2, social)
    return "\n".join(lines)


FAILURE_LABELS = (
    ("social", "Social Conflicts"),
    ("roles", "Role Issues"),
    ("emergency_gk", "Emergency GK Rule"),
    ("role_split", "DEF/ATT Split Rule"),
    ("wants_strict", "Wants Strict Rule"),
    ("wants_mutual", "Wants Mutual Rule"),
    ("owner_bias", "Owner Bias (Too strong)"),
)


def render_fallback_analysis(
    breakdown,
    team1: Sequence,
    team2: Sequence,
    social,
    cfg: dict,
    *,
    failure_pcts: Dict[str, int],
    roster_keepers,
) -> str:
    minimum = int(cfg["EMERGENCY_GK_MIN_CAPABLE"])
    lines = [f"Analysis (Score: {round_half_up(breakdown.score)})", "", "[Details]"]
    lines.append("- FALLBACK USED: staged constraints could not be met.")
    for key, label in FAILURE_LABELS:
        lines.append(f"- {label}: {failure_pcts.get(key, 0)}%")
    lines.append("- Teams generated using Power Rating (Best Fit, ignoring constraints).")
    lines += [
        "",
        "[Emergency GK]",
        f"- Selected GK willingness: yes={roster_keepers.yes}, low={roster_keepers.low}, no={roster_keepers.no}.",
        f"- Rule when no GK role: each team needs >= {minimum} capable keepers (yes + low).",
        _keeper_line("T1", breakdown.stats1.keepers),
        _keeper_line("T2", breakdown.stats2.keepers),
        f"- Status in fallback split: {'PASS' if _emergency_pass(breakdown, minimum) else 'FAIL'}",
        "",
        "[Lineups]",
        f"- T1: {format_lineup(team1)}",
        f"- T2: {format_lineup(team2)}",
        "",
    ]
    lines += _social_section(team1, team2, social)
    return "\n".join(lines)

# -------------------- Files --------------------

def lineup_rows(result) -> List[Dict[str, object]]:
    rows: List[Dict[str, object]] = []
    options = [("primary", result.primary)]
    if result.secondary is not None:
        options.append(("secondary", result.secondary))
    for label, option in options:
        for team_label, team in (("T1", option.team1), ("T2", option.team2)):
            for p in sorted(team, key=lambda p: (ROLE_PRIORITY.get(p.role, 99), p.name.casefold())):
                rows.append({
                    "Option": label,
                    "Stage": option.stage,
                    "Team": team_label,
                    "Id": p.id,
                    "Name": p.name,
                    "Role": p.role,
                    "Rating": p.rating,
                    "GKWillingness": p.gk_willingness,
                })
    return rows


def write_lineups(result, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=LINEUP_FIELDS)
        writer.writeheader()
        for row in lineup_rows(result):
            writer.writerow(row)


def summary_lines(result) -> List[str]:
    primary = result.primary
    lines = ["Team generation report", f"Tier: {result.tier} (stage {primary.stage})"]
    lines.append(
        f"Option 1: score={fmt(primary.score)}, rating T1={primary.team1_rating} vs T2={primary.team2_rating}, "
        f"social={primary.social_satisfaction_pct}%{' [fallback]' if primary.is_fallback else ''}"
    )
    if result.secondary is None:
        lines.append(f"Option 2: none ({result.secondary_reason})")
    else:
        second = result.secondary
        lines.append(
            f"Option 2: score={fmt(second.score)}, rating T1={second.team1_rating} vs T2={second.team2_rating}, "
            f"social={second.social_satisfaction_pct}%"
        )
    comparison = result.comparison
    if comparison is not None:
        lines.append(
            f"Option 2 vs 1: score {signed(comparison.score_delta)}, rating diff {signed(comparison.rating_diff_delta)}, "
            f"social {signed(comparison.social_delta)}"
        )
        lines.append("  • Moved to T1: " + (", ".join(comparison.moved_to_team1) or "-"))
        lines.append("  • Moved to T2: " + (", ".join(comparison.moved_to_team2) or "-"))
    failures = {k: v for k, v in (result.failure_stats or {}).items() if v}
    if failures:
        lines.append("Rejected splits by rule: " + ", ".join(f"{k}={v}" for k, v in sorted(failures.items())))
    return lines


def write_summary(result, path: Path) -> None:
    if str(path) == "-":
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    text = "\n".join(summary_lines(result)) + "\n\n" + result.primary.report + "\n"
    if result.secondary is not None:
        text += "\n" + result.secondary.report + "\n"
    path.write_text(text, encoding="utf-8")
