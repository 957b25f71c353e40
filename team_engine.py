#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Five-a-side team generator.

Splits exactly ten players into two sides of five. Every one of the
C(10, 5) = 252 splits is checked against the stage rules, scored, folded
onto its canonical orientation and ranked. The first stage that leaves at
least one legal split wins; the primary option is its top candidate and the
secondary option is the runner-up from the same stage.

Hard constraints (per side):

* no two players where either one avoids the other
* at most one GK-role player and at most two DEF-role players
* a side without a GK-role player needs two keepers willing "yes" or "low"

Hard constraints (whole split):

* a role that appears exactly twice in the roster (ATT, DEF) is split 1-1
* the owner never sits on the strictly stronger side (when configured)
* "wants" links: none may cross (STRICT), only one-directional links may
  cross (RELAXED_UNILATERAL), or unchecked (RELAXED_MUTUAL)

Stage sequence:

STRICT → RELAXED_UNILATERAL → RELAXED_MUTUAL → SOCIAL_HARD_FALLBACK →
ABSOLUTE_FALLBACK. The social-hard tier keeps only the avoids rule and the
strict wants rule. The absolute tier ignores every rule and deals players by
power rating in a 1-2-2-1 snake, so a ten-player roster always gets teams.
"""

from __future__ import annotations
import copy, csv
from collections import defaultdict
from dataclasses import dataclass, field
from itertools import combinations
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import team_report
from team_report import round_half_up

ROSTER_SIZE = 10
SIDE_SIZE = 5

ROLES = ("GK", "DEF", "MID", "ATT", "FLEX")
GK_WILLINGNESS = ("yes", "low", "no")
ATTRIBUTE_LEVELS = ("low", "mid", "high")
ATTRIBUTE_KEYS = (
    "shooting",
    "control",
    "passing",
    "defense",
    "pace",
    "vision",
    "grit",
    "stamina",
)

# Stage tags carried on every option
STAGE_STRICT = "STRICT"
STAGE_RELAXED_UNILATERAL = "RELAXED_UNILATERAL"
STAGE_RELAXED_MUTUAL = "RELAXED_MUTUAL"
STAGE_FALLBACK = "FALLBACK"

# Orchestrator states (the two fallback tiers share the FALLBACK stage tag)
STATE_STRICT = "STRICT"
STATE_RELAXED_UNILATERAL = "RELAXED_UNILATERAL"
STATE_RELAXED_MUTUAL = "RELAXED_MUTUAL"
STATE_SOCIAL_HARD_FALLBACK = "SOCIAL_HARD_FALLBACK"
STATE_ABSOLUTE_FALLBACK = "ABSOLUTE_FALLBACK"

WANTS_STRICT = "strict"
WANTS_UNILATERAL = "relaxed_unilateral"
WANTS_OFF = "relaxed_mutual"

REASON_SOCIAL = "social"
REASON_ROLES = "roles"
REASON_EMERGENCY_GK = "emergency_gk"
REASON_ROLE_SPLIT = "role_split"
REASON_WANTS_STRICT = "wants_strict"
REASON_WANTS_MUTUAL = "wants_mutual"
REASON_OWNER_BIAS = "owner_bias"
FAILURE_REASONS = (
    REASON_SOCIAL,
    REASON_ROLES,
    REASON_EMERGENCY_GK,
    REASON_ROLE_SPLIT,
    REASON_WANTS_STRICT,
    REASON_WANTS_MUTUAL,
    REASON_OWNER_BIAS,
)

SECONDARY_OPTION_REASON = (
    "Second option has lower balance score than Option 1 under the same constraint stage."
)
NO_SECONDARY_OPTION_REASON = "No second option available under current constraints."

# =============== CONFIG (rules + weights together) ====================
DEFAULT_CONFIG = {
    # Per-side role caps; roles not listed are uncapped
    "ROLE_CAPS": {
        "GK": 1,
        "DEF": 2,
    },
    # A side with no GK-role player needs this many "yes"/"low" keepers
    "EMERGENCY_GK_MIN_CAPABLE": 2,
    # Roles that must go 1-1 when exactly two of them are in the roster
    "SPLIT_ROLES": ["ATT", "DEF"],

    "ATTRIBUTE_CATEGORIES": {
        "pace": "PHYSICAL",
        "stamina": "PHYSICAL",
        "shooting": "TECHNICAL",
        "control": "TECHNICAL",
        "passing": "TECHNICAL",
        "defense": "TECHNICAL",
        "vision": "MENTAL",
        "grit": "MENTAL",
    },
    "ATTRIBUTE_WEIGHTS": {
        "PHYSICAL": {"high": 2.0, "mid": 0.0, "low": -2.0},
        "TECHNICAL": {"high": 1.5, "mid": 0.0, "low": -1.0},
        "MENTAL": {"high": 1.0, "mid": 0.0, "low": -0.5},
    },

    # Balance score: BASE minus per-unit penalties. PACE, STAMINA and DEFENSE
    # are charged on top of the aggregate ATTRIBUTES penalty.
    "SCORE": {
        "BASE": 100,
        "RATING": 10,
        "ATTRIBUTES": 5,
        "PACE": 10,
        "STAMINA": 8,
        "DEFENSE": 5,
    },
    # Soft keeper adjustment; only applies when a side lacks a GK-role player
    "GK_PREFERENCE": {
        "YES_IMBALANCE": 8,
        "LOW_SUPPORT_REWARD": 6,
        "LOW_SUPPORT_PENALTY": 6,
    },
    # Soft attacker spread adjustment
    "ATTACKER_SPREAD": {
        "IMBALANCE": 6,
        "HEAVY_TOTAL": 5,
        "DEFENDED_REWARD": 6,
        "UNDEFENDED_PENALTY": 8,
    },

    # Attributes added to the rating when dealing the absolute fallback
    "FALLBACK_POWER": ["pace", "control"],

    # Report labels (first threshold the score reaches wins)
    "SCORE_LABELS": [
        [70, "highly balanced"],
        [40, "balanced"],
        [0, "playable but imbalanced"],
    ],
    "SCORE_LABEL_FLOOR": "imbalanced",
}


def deep_update(dst: dict, src: dict) -> dict:
    """Recursively merge ``src`` into ``dst`` (in-place)."""

    for key, value in (src or {}).items():
        if isinstance(value, dict) and isinstance(dst.get(key), dict):
            deep_update(dst[key], value)
        else:
            dst[key] = copy.deepcopy(value)
    return dst


def _validate_config(cfg: dict) -> None:
    for role, cap in (cfg.get("ROLE_CAPS") or {}).items():
        if role not in ROLES:
            raise ValueError(f"ROLE_CAPS has unknown role '{role}'")
        if int(cap) < 0:
            raise ValueError(f"ROLE_CAPS.{role} must be >= 0")
    if int(cfg.get("EMERGENCY_GK_MIN_CAPABLE", 0)) <= 0:
        raise ValueError("EMERGENCY_GK_MIN_CAPABLE must be >0")
    for role in cfg.get("SPLIT_ROLES") or []:
        if role not in ROLES:
            raise ValueError(f"SPLIT_ROLES has unknown role '{role}'")
    weights = cfg.get("ATTRIBUTE_WEIGHTS") or {}
    for key in ATTRIBUTE_KEYS:
        category = (cfg.get("ATTRIBUTE_CATEGORIES") or {}).get(key)
        if category not in weights:
            raise ValueError(f"Attribute '{key}' has unknown category '{category}'")
    for category, levels in weights.items():
        missing = [lvl for lvl in ATTRIBUTE_LEVELS if lvl not in levels]
        if missing:
            raise ValueError(f"ATTRIBUTE_WEIGHTS.{category} is missing levels: {', '.join(missing)}")
    for key in cfg.get("FALLBACK_POWER") or []:
        if key not in ATTRIBUTE_KEYS:
            raise ValueError(f"FALLBACK_POWER has unknown attribute '{key}'")
    for section in ("SCORE", "GK_PREFERENCE", "ATTACKER_SPREAD"):
        defaults = DEFAULT_CONFIG[section]
        values = cfg.get(section)
        if not isinstance(values, dict):
            raise ValueError(f"{section} must be an object")
        for key in defaults:
            if not _is_number(values.get(key)):
                raise ValueError(f"{section}.{key} must be a number")
    for category, levels in weights.items():
        for level in ATTRIBUTE_LEVELS:
            if not _is_number(levels.get(level)):
                raise ValueError(f"ATTRIBUTE_WEIGHTS.{category}.{level} must be a number")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def build_config(overrides: dict | None = None) -> dict:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    if overrides:
        deep_update(cfg, overrides)
    _validate_config(cfg)
    return cfg

# =====================================================================

# -------------------- Data model --------------------

@dataclass(frozen=True)
class Player:
    id: str
    name: str
    role: str = "FLEX"
    rating: int = 5
    # left out of the hash so players still work in sets and as dict keys
    attributes: Dict[str, str] = field(default_factory=dict, hash=False)
    gk_willingness: str = "no"
    wants: FrozenSet[str] = frozenset()
    avoids: FrozenSet[str] = frozenset()

    def level(self, key: str) -> str:
        return self.attributes.get(key) or "mid"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "rating": self.rating,
            "gkWillingness": self.gk_willingness,
        }


@dataclass(frozen=True)
class StageRules:
    """One state of the stage machine."""

    state: str
    stage: str
    wants_mode: str
    role_rules: bool
    owner_bias: bool
    is_fallback: bool = False


STAGE_SEQUENCE: Tuple[StageRules, ...] = (
    StageRules(STATE_STRICT, STAGE_STRICT, WANTS_STRICT, role_rules=True, owner_bias=True),
    StageRules(STATE_RELAXED_UNILATERAL, STAGE_RELAXED_UNILATERAL, WANTS_UNILATERAL, role_rules=True, owner_bias=True),
    StageRules(STATE_RELAXED_MUTUAL, STAGE_RELAXED_MUTUAL, WANTS_OFF, role_rules=True, owner_bias=True),
    StageRules(STATE_SOCIAL_HARD_FALLBACK, STAGE_FALLBACK, WANTS_STRICT, role_rules=False, owner_bias=False, is_fallback=True),
)


@dataclass
class GoalkeeperProfile:
    gk_roles: int = 0
    yes: int = 0
    low: int = 0
    no: int = 0

    @property
    def capable(self) -> int:
        return self.yes + self.low


@dataclass
class SideStats:
    rating: int
    attributes: Dict[str, float]
    keepers: GoalkeeperProfile
    attackers: int
    defenders: int


@dataclass
class GoalkeeperAdjustment:
    applied: bool = False
    adjustment: float = 0
    yes_imbalance: int = 0
    weaker: str = "Even"             # "T1", "T2" or "Even"
    weaker_has_low: Optional[bool] = None


@dataclass
class AttackerAdjustment:
    adjustment: float = 0
    imbalance: int = 0
    total: int = 0
    heavier: str = "Even"
    heavier_has_defender: Optional[bool] = None


@dataclass
class ScoreBreakdown:
    base: float
    weights: Dict[str, float]
    stats1: SideStats
    stats2: SideStats
    keepers: GoalkeeperAdjustment
    attackers: AttackerAdjustment

    def diff(self, key: str) -> float:
        return abs(self.stats1.attributes[key] - self.stats2.attributes[key])

    @property
    def rating_diff(self) -> int:
        return abs(self.stats1.rating - self.stats2.rating)

    @property
    def attribute_diff_total(self) -> float:
        return sum(self.diff(key) for key in ATTRIBUTE_KEYS)

    @property
    def penalties(self) -> Dict[str, float]:
        w = self.weights
        return {
            "rating": self.rating_diff * w["RATING"],
            "attributes": self.attribute_diff_total * w["ATTRIBUTES"],
            "pace": self.diff("pace") * w["PACE"],
            "stamina": self.diff("stamina") * w["STAMINA"],
            "defense": self.diff("defense") * w["DEFENSE"],
        }

    @property
    def score(self) -> float:
        return (
            self.base
            - sum(self.penalties.values())
            + self.keepers.adjustment
            + self.attackers.adjustment
        )


@dataclass
class Candidate:
    team1: Tuple[Player, ...]
    team2: Tuple[Player, ...]
    breakdown: ScoreBreakdown
    canonical_key: str
    display_key: str

    @property
    def score(self) -> float:
        return self.breakdown.score

    @property
    def rating_diff(self) -> int:
        return self.breakdown.rating_diff

    def rank_key(self) -> Tuple[float, int, str]:
        return (-self.score, self.rating_diff, self.display_key)


@dataclass
class SocialSummary:
    wants_met: int = 0
    wants_total: int = 0
    avoids_met: int = 0
    avoids_total: int = 0

    @property
    def met(self) -> int:
        return self.wants_met + self.avoids_met

    @property
    def total(self) -> int:
        return self.wants_total + self.avoids_total

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 100
        return round_half_up(self.met * 100 / self.total)


@dataclass
class TeamOption:
    team1: List[Player]
    team2: List[Player]
    score: float
    stage: str
    social_satisfaction_pct: int
    report: str
    is_fallback: bool
    breakdown: ScoreBreakdown
    social: SocialSummary

    @property
    def team1_rating(self) -> int:
        return sum(p.rating for p in self.team1)

    @property
    def team2_rating(self) -> int:
        return sum(p.rating for p in self.team2)

    @property
    def rating_diff(self) -> int:
        return abs(self.team1_rating - self.team2_rating)

    def to_dict(self) -> dict:
        return {
            "team1": {"players": [p.to_dict() for p in self.team1], "totalRating": self.team1_rating},
            "team2": {"players": [p.to_dict() for p in self.team2], "totalRating": self.team2_rating},
            "score": self.score,
            "stage": self.stage,
            "socialSatisfactionPct": self.social_satisfaction_pct,
            "isFallback": self.is_fallback,
            "explanation": self.report,
        }


@dataclass
class OptionComparison:
    reason: str
    score_delta: float
    rating_diff_delta: int
    social_delta: int
    moved_to_team1: List[str]
    moved_to_team2: List[str]

    def to_dict(self) -> dict:
        return {
            "reason": self.reason,
            "scoreDelta": self.score_delta,
            "ratingDiffDelta": self.rating_diff_delta,
            "socialDelta": self.social_delta,
            "movedToTeam1": list(self.moved_to_team1),
            "movedToTeam2": list(self.moved_to_team2),
        }


@dataclass
class GenerationResult:
    primary: TeamOption
    secondary: Optional[TeamOption]
    secondary_reason: str
    comparison: Optional[OptionComparison]
    tier: str
    failure_stats: Dict[str, int]
    candidates: List[Candidate] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "tier": self.tier,
            "primary": self.primary.to_dict(),
            "secondary": self.secondary.to_dict() if self.secondary else None,
            "secondaryReason": self.secondary_reason,
            "comparison": self.comparison.to_dict() if self.comparison else None,
            "failureStats": dict(self.failure_stats),
            "rankedCandidates": len(self.candidates),
        }


class GenerationLogger:
    """Step-by-step decision log, written as ``decision_log.csv`` by the CLI."""

    FIELDS = ("Step", "Stage", "Evaluated", "Accepted", "Status", "Note")

    def __init__(self):
        self.rows: List[Dict[str, object]] = []
        self.step = 0

    def log(self, stage: str, status: str, *, evaluated: object = "", accepted: object = "", note: str = ""):
        self.step += 1
        self.rows.append({
            "Step": self.step, "Stage": stage,
            "Evaluated": evaluated, "Accepted": accepted,
            "Status": status, "Note": note,
        })

    def write_csv(self, out: Path):
        out.parent.mkdir(parents=True, exist_ok=True)
        with out.open("w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=self.FIELDS)
            w.writeheader()
            for r in self.rows:
                w.writerow({k: r.get(k, "") for k in self.FIELDS})

# -------------------- Roster guard + partitions --------------------

def guard_roster(players: Sequence[Player]) -> Optional[List[Player]]:
    """Return the roster unchanged when it has exactly ten players, else None."""
    if players is None or len(players) != ROSTER_SIZE:
        return None
    return list(players)


def generate_partitions(players: Sequence[Player]) -> List[Tuple[Tuple[Player, ...], Tuple[Player, ...]]]:
    # Index-based complement keeps both sides at five even with duplicate ids.
    partitions = []
    indices = range(len(players))
    for picked in combinations(indices, SIDE_SIZE):
        chosen = set(picked)
        side_a = tuple(players[i] for i in picked)
        side_b = tuple(players[i] for i in indices if i not in chosen)
        partitions.append((side_a, side_b))
    return partitions

# -------------------- Constraint validator --------------------

def count_role(players: Iterable[Player], role: str) -> int:
    return sum(1 for p in players if p.role == role)


def keeper_profile(players: Iterable[Player]) -> GoalkeeperProfile:
    profile = GoalkeeperProfile()
    for p in players:
        if p.role == "GK":
            profile.gk_roles += 1
        if p.gk_willingness == "yes":
            profile.yes += 1
        elif p.gk_willingness == "low":
            profile.low += 1
        else:
            profile.no += 1
    return profile


def has_social_conflict(side: Sequence[Player]) -> bool:
    ids = {p.id for p in side}
    for p in side:
        for other in p.avoids:
            if other != p.id and other in ids:
                return True
    return False


def side_violation(side: Sequence[Player], cfg: dict, *, role_rules: bool = True) -> Optional[str]:
    """First hard rule the side breaks, or None."""
    if has_social_conflict(side):
        return REASON_SOCIAL
    if not role_rules:
        return None
    for role, cap in cfg["ROLE_CAPS"].items():
        if count_role(side, role) > int(cap):
            return REASON_ROLES
    keepers = keeper_profile(side)
    if keepers.gk_roles == 0 and keepers.capable < int(cfg["EMERGENCY_GK_MIN_CAPABLE"]):
        return REASON_EMERGENCY_GK
    return None


def role_split_violation(
    side_a: Sequence[Player],
    side_b: Sequence[Player],
    roster: Sequence[Player],
    cfg: dict,
) -> Optional[str]:
    for role in cfg["SPLIT_ROLES"]:
        if count_role(roster, role) != 2:
            continue
        if count_role(side_a, role) != 1 or count_role(side_b, role) != 1:
            return REASON_ROLE_SPLIT
    return None


def wants_violation(side_a: Sequence[Player], side_b: Sequence[Player], mode: str) -> Optional[str]:
    if mode == WANTS_OFF:
        return None
    side_of: Dict[str, int] = {}
    by_id: Dict[str, Player] = {}
    for idx, side in enumerate((side_a, side_b)):
        for p in side:
            side_of[p.id] = idx
            by_id[p.id] = p
    for source in (*side_a, *side_b):
        for target_id in sorted(source.wants):
            if target_id not in side_of or side_of[target_id] == side_of[source.id]:
                continue
            if mode == WANTS_STRICT:
                return REASON_WANTS_STRICT
            if source.id in by_id[target_id].wants:
                return REASON_WANTS_MUTUAL
    return None


def owner_violation(
    side_a: Sequence[Player],
    side_b: Sequence[Player],
    owner_id: Optional[str],
) -> Optional[str]:
    """The owner may sit on the weaker or an equal side, never the stronger."""
    if not owner_id:
        return None
    in_a = any(p.id == owner_id for p in side_a)
    in_b = any(p.id == owner_id for p in side_b)
    if not (in_a or in_b):
        return None
    rating_a = sum(p.rating for p in side_a)
    rating_b = sum(p.rating for p in side_b)
    if rating_a == rating_b:
        return None
    a_is_stronger = rating_a > rating_b
    if (in_a and a_is_stronger) or (not in_a and not a_is_stronger):
        return REASON_OWNER_BIAS
    return None

# -------------------- Scoring --------------------

def attribute_value(level: str, category: str, cfg: dict) -> float:
    weights = cfg["ATTRIBUTE_WEIGHTS"][category]
    return float(weights.get(level or "mid", weights["mid"]))


def side_stats(side: Sequence[Player], cfg: dict) -> SideStats:
    categories = cfg["ATTRIBUTE_CATEGORIES"]
    attributes = {
        key: sum(attribute_value(p.level(key), categories[key], cfg) for p in side)
        for key in ATTRIBUTE_KEYS
    }
    return SideStats(
        rating=sum(p.rating for p in side),
        attributes=attributes,
        keepers=keeper_profile(side),
        attackers=count_role(side, "ATT"),
        defenders=count_role(side, "DEF"),
    )


def keeper_adjustment(stats1: SideStats, stats2: SideStats, cfg: dict) -> GoalkeeperAdjustment:
    if stats1.keepers.gk_roles > 0 and stats2.keepers.gk_roles > 0:
        return GoalkeeperAdjustment()

    w = cfg["GK_PREFERENCE"]
    yes1, yes2 = stats1.keepers.yes, stats2.keepers.yes
    result = GoalkeeperAdjustment(applied=True, yes_imbalance=abs(yes1 - yes2))
    result.adjustment = -result.yes_imbalance * w["YES_IMBALANCE"]
    if yes1 != yes2:
        team1_weaker = yes1 < yes2
        weaker = stats1 if team1_weaker else stats2
        result.weaker = "T1" if team1_weaker else "T2"
        result.weaker_has_low = weaker.keepers.low > 0
        result.adjustment += w["LOW_SUPPORT_REWARD"] if result.weaker_has_low else -w["LOW_SUPPORT_PENALTY"]
    return result


def attacker_adjustment(stats1: SideStats, stats2: SideStats, cfg: dict) -> AttackerAdjustment:
    w = cfg["ATTACKER_SPREAD"]
    att1, att2 = stats1.attackers, stats2.attackers
    result = AttackerAdjustment(imbalance=abs(att1 - att2), total=att1 + att2)
    result.adjustment = -result.imbalance * w["IMBALANCE"]
    if att1 != att2:
        heavier = stats1 if att1 > att2 else stats2
        result.heavier = "T1" if att1 > att2 else "T2"
        result.heavier_has_defender = heavier.defenders > 0
        if result.total >= w["HEAVY_TOTAL"]:
            result.adjustment += w["DEFENDED_REWARD"] if result.heavier_has_defender else -w["UNDEFENDED_PENALTY"]
    return result


def score_partition(side1: Sequence[Player], side2: Sequence[Player], cfg: dict) -> ScoreBreakdown:
    stats1 = side_stats(side1, cfg)
    stats2 = side_stats(side2, cfg)
    return ScoreBreakdown(
        base=cfg["SCORE"]["BASE"],
        weights=cfg["SCORE"],
        stats1=stats1,
        stats2=stats2,
        keepers=keeper_adjustment(stats1, stats2, cfg),
        attackers=attacker_adjustment(stats1, stats2, cfg),
    )


def power_rating(player: Player, cfg: dict) -> float:
    categories = cfg["ATTRIBUTE_CATEGORIES"]
    return player.rating + sum(
        attribute_value(player.level(key), categories[key], cfg) for key in cfg["FALLBACK_POWER"]
    )

# -------------------- Canonicalizer + ranker --------------------

def side_ids(side: Sequence[Player]) -> List[str]:
    return sorted(p.id for p in side)


def canonicalize(side_a: Sequence[Player], side_b: Sequence[Player]):
    """Order the sides so team1 has the lexicographically smaller id list."""
    ids_a, ids_b = side_ids(side_a), side_ids(side_b)
    if ids_b < ids_a:
        side_a, side_b = side_b, side_a
        ids_a, ids_b = ids_b, ids_a
    key_a, key_b = ",".join(ids_a), ",".join(ids_b)
    team1 = tuple(sorted(side_a, key=lambda p: p.id))
    team2 = tuple(sorted(side_b, key=lambda p: p.id))
    return team1, team2, f"{key_a}||{key_b}", f"{key_a}|{key_b}"


class CandidatePool:
    """Keeps one candidate per canonical split.

    Scores are symmetric in the two sides, so both orientations of a split
    canonicalize to the same candidate. When two candidates do share a key but
    rank differently, the better ranked one is kept.
    """

    def __init__(self):
        self.by_key: Dict[str, Candidate] = {}

    def offer(self, candidate: Candidate) -> bool:
        existing = self.by_key.get(candidate.canonical_key)
        if existing is None or candidate.rank_key() < existing.rank_key():
            self.by_key[candidate.canonical_key] = candidate
            return True
        return False

    def __len__(self) -> int:
        return len(self.by_key)

    def ranked(self) -> List[Candidate]:
        return sorted(self.by_key.values(), key=Candidate.rank_key)


def rank_stage(
    roster: Sequence[Player],
    partitions: Sequence[Tuple[Tuple[Player, ...], Tuple[Player, ...]]],
    rules: StageRules,
    cfg: dict,
    *,
    owner_id: Optional[str] = None,
    failures: Dict[str, int] | None = None,
) -> List[Candidate]:
    """Validate, score and rank every partition under one stage's rules."""
    failures = failures if failures is not None else defaultdict(int)
    pool = CandidatePool()

    for side_a, side_b in partitions:
        reason_a = side_violation(side_a, cfg, role_rules=rules.role_rules)
        reason_b = side_violation(side_b, cfg, role_rules=rules.role_rules)
        if reason_a or reason_b:
            for reason in (reason_a, reason_b):
                if reason:
                    failures[reason] += 1
            continue

        if rules.role_rules:
            reason = role_split_violation(side_a, side_b, roster, cfg)
            if reason:
                failures[reason] += 1
                continue

        reason = wants_violation(side_a, side_b, rules.wants_mode)
        if reason:
            failures[reason] += 1
            continue

        if rules.owner_bias:
            reason = owner_violation(side_a, side_b, owner_id)
            if reason:
                failures[reason] += 1
                continue

        team1, team2, canonical_key, display_key = canonicalize(side_a, side_b)
        pool.offer(Candidate(
            team1=team1,
            team2=team2,
            breakdown=score_partition(team1, team2, cfg),
            canonical_key=canonical_key,
            display_key=display_key,
        ))

    return pool.ranked()

# -------------------- Results --------------------

def social_satisfaction(team1: Sequence[Player], team2: Sequence[Player]) -> SocialSummary:
    side_of = {p.id: 1 for p in team1}
    side_of.update({p.id: 2 for p in team2})
    summary = SocialSummary()
    for p in (*team1, *team2):
        for target in p.wants:
            if target == p.id or target not in side_of:
                continue
            summary.wants_total += 1
            if side_of[target] == side_of[p.id]:
                summary.wants_met += 1
        for target in p.avoids:
            if target == p.id or target not in side_of:
                continue
            summary.avoids_total += 1
            if side_of[target] != side_of[p.id]:
                summary.avoids_met += 1
    return summary


def build_option(
    team1: Sequence[Player],
    team2: Sequence[Player],
    breakdown: ScoreBreakdown,
    stage: str,
    cfg: dict,
    *,
    is_fallback: bool = False,
    notes: Sequence[str] = (),
) -> TeamOption:
    social = social_satisfaction(team1, team2)
    report = team_report.render_analysis(
        breakdown,
        team1,
        team2,
        social,
        cfg,
        notes=notes,
    )
    return TeamOption(
        team1=list(team1),
        team2=list(team2),
        score=breakdown.score,
        stage=stage,
        social_satisfaction_pct=social.percentage,
        report=report,
        is_fallback=is_fallback,
        breakdown=breakdown,
        social=social,
    )


def _sorted_names(names: Iterable[str]) -> List[str]:
    return sorted(names, key=lambda n: (n.casefold(), n))


def compare_options(primary: TeamOption, secondary: TeamOption, reason: str) -> OptionComparison:
    primary_team1 = {p.id for p in primary.team1}
    return OptionComparison(
        reason=reason,
        score_delta=secondary.score - primary.score,
        rating_diff_delta=secondary.rating_diff - primary.rating_diff,
        social_delta=secondary.social_satisfaction_pct - primary.social_satisfaction_pct,
        moved_to_team1=_sorted_names(p.name for p in secondary.team1 if p.id not in primary_team1),
        moved_to_team2=_sorted_names(p.name for p in secondary.team2 if p.id in primary_team1),
    )


def failure_percentages(failures: Dict[str, int]) -> Dict[str, int]:
    total = sum(failures.get(r, 0) for r in FAILURE_REASONS)
    if total <= 0:
        return {r: 0 for r in FAILURE_REASONS}
    return {r: round_half_up(failures.get(r, 0) * 100 / total) for r in FAILURE_REASONS}


def snake_split(players: Sequence[Player], cfg: dict) -> Tuple[List[Player], List[Player]]:
    """Deal by power rating: positions 0 and 3 of every block of four go to team1."""
    ordered = sorted(players, key=lambda p: (-power_rating(p, cfg), p.id))
    team1: List[Player] = []
    team2: List[Player] = []
    for idx, player in enumerate(ordered):
        if idx % 4 in (0, 3):
            team1.append(player)
        else:
            team2.append(player)
    return team1, team2


def _absolute_fallback(roster: List[Player], cfg: dict, failures: Dict[str, int]) -> GenerationResult:
    team1, team2 = snake_split(roster, cfg)
    breakdown = score_partition(team1, team2, cfg)
    social = social_satisfaction(team1, team2)
    report = team_report.render_fallback_analysis(
        breakdown,
        team1,
        team2,
        social,
        cfg,
        failure_pcts=failure_percentages(failures),
        roster_keepers=keeper_profile(roster),
    )
    option = TeamOption(
        team1=team1,
        team2=team2,
        score=breakdown.score,
        stage=STAGE_FALLBACK,
        social_satisfaction_pct=social.percentage,
        report=report,
        is_fallback=True,
        breakdown=breakdown,
        social=social,
    )
    return GenerationResult(
        primary=option,
        secondary=None,
        secondary_reason=NO_SECONDARY_OPTION_REASON,
        comparison=None,
        tier=STATE_ABSOLUTE_FALLBACK,
        failure_stats=dict(failures),
    )


def generate_teams(
    roster: Sequence[Player],
    *,
    owner_id: Optional[str] = None,
    overrides: dict | None = None,
    logger: GenerationLogger | None = None,
) -> Optional[GenerationResult]:
    players = guard_roster(roster)
    if players is None:
        if logger is not None:
            logger.log("GUARD", "Rejected", note=f"roster size {0 if roster is None else len(roster)} != {ROSTER_SIZE}")
        return None

    cfg = build_config(overrides)
    owner = ("" if owner_id is None else str(owner_id)).strip() or None
    if owner and logger is not None and not any(p.id == owner for p in players):
        logger.log("GUARD", "Owner skipped", note=f"owner id {owner} not in roster")

    partitions = generate_partitions(players)
    failures: Dict[str, int] = defaultdict(int)

    for rules in STAGE_SEQUENCE:
        before = dict(failures)
        ranked = rank_stage(players, partitions, rules, cfg, owner_id=owner, failures=failures)
        if logger is not None:
            delta = {r: failures.get(r, 0) - before.get(r, 0) for r in FAILURE_REASONS}
            note = ", ".join(f"{r}={n}" for r, n in delta.items() if n)
            logger.log(rules.state, "Accepted" if ranked else "Empty",
                       evaluated=len(partitions), accepted=len(ranked), note=note)
        if not ranked:
            continue

        notes: List[str] = []
        if rules.is_fallback:
            notes.append("FALLBACK USED: role and goalkeeper rules dropped; avoids and strict wants kept.")
        best = ranked[0]
        primary = build_option(best.team1, best.team2, best.breakdown, rules.stage, cfg,
                               is_fallback=rules.is_fallback, notes=notes)
        secondary = None
        comparison = None
        if len(ranked) > 1:
            runner_up = ranked[1]
            secondary = build_option(runner_up.team1, runner_up.team2, runner_up.breakdown, rules.stage, cfg,
                                     is_fallback=rules.is_fallback, notes=notes)
            comparison = compare_options(primary, secondary, SECONDARY_OPTION_REASON)
        if logger is not None:
            logger.log(rules.state, "Selected", accepted=1 + (secondary is not None),
                       note=f"primary={best.display_key} score={best.score:g}")
        return GenerationResult(
            primary=primary,
            secondary=secondary,
            secondary_reason=SECONDARY_OPTION_REASON if secondary else NO_SECONDARY_OPTION_REASON,
            comparison=comparison,
            tier=rules.state,
            failure_stats=dict(failures),
            candidates=ranked,
        )

    result = _absolute_fallback(players, cfg, failures)
    if logger is not None:
        logger.log(STATE_ABSOLUTE_FALLBACK, "Selected", accepted=1, note="snake split by power rating")
    return result
