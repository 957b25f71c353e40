#!/usr/bin/env python3
"""Produce graphs that show how a generated split treats the social links."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.lines import Line2D
import networkx as nx

import generate_teams
import roster_io
import team_engine

TEAM_COLORS = {"T1": "#1f77b4", "T2": "#ff7f0e"}
EDGE_COLORS = {"wants": "#2ca02c", "avoids": "#d62728"}
LAYOUT_CHOICES = ("teams", "spring")


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Visualize generated teams")
    ap.add_argument("--roster", default="roster.csv", type=Path)
    ap.add_argument("--ids", default="", help="Comma-separated ids of the ten selected players")
    ap.add_argument("--owner", default=None)
    ap.add_argument("--config", type=Path, help="Optional JSON file with CONFIG overrides")
    ap.add_argument("--option", choices=("primary", "secondary"), default="primary")
    ap.add_argument(
        "--out-dir",
        dest="out_dir",
        default=Path("teams_graphs"),
        type=Path,
        help="Directory for generated graph files",
    )
    ap.add_argument("--out-prefix", default="teams", type=str, help="Base filename prefix for images")
    ap.add_argument(
        "--layouts",
        nargs="+",
        default=list(LAYOUT_CHOICES),
        choices=LAYOUT_CHOICES,
        help="One or more layout names to render",
    )
    ap.add_argument("--dpi", type=int, default=200, help="Output DPI")
    ap.add_argument("--skip-analysis", action="store_true", help="Skip the score distribution chart")
    return ap.parse_args(argv)


def build_social_graph(option: team_engine.TeamOption) -> nx.DiGraph:
    graph = nx.DiGraph()
    team_of: Dict[str, str] = {}
    for team_label, team in (("T1", option.team1), ("T2", option.team2)):
        for p in team:
            team_of[p.id] = team_label
            graph.add_node(p.id, label=p.name, team=team_label, role=p.role, rating=p.rating)

    for p in (*option.team1, *option.team2):
        for kind, targets in (("wants", p.wants), ("avoids", p.avoids)):
            for target in sorted(targets):
                if target == p.id or target not in team_of:
                    continue
                same = team_of[p.id] == team_of[target]
                met = same if kind == "wants" else not same
                # avoids are added last, so they win over a wants link to the same person
                graph.add_edge(p.id, target, kind=kind, met=met)

    if not graph.nodes:
        raise RuntimeError("No players to visualize")
    return graph


def _layout_teams(graph: nx.DiGraph) -> Dict[str, Tuple[float, float]]:
    positions: Dict[str, Tuple[float, float]] = {}
    for x, team_label in enumerate(("T1", "T2")):
        members = sorted(n for n in graph.nodes if graph.nodes[n]["team"] == team_label)
        for idx, node in enumerate(members):
            positions[node] = (x * 3.0, -idx)
    return positions


def _layout_spring(graph: nx.DiGraph) -> Dict[str, Tuple[float, float]]:
    if len(graph.nodes) == 1:
        return {next(iter(graph.nodes)): (0.0, 0.0)}
    return nx.spring_layout(graph, seed=42)


LAYOUT_FNS = {
    "teams": _layout_teams,
    "spring": _layout_spring,
}


def draw_social_graph(
    graph: nx.DiGraph,
    out_dir: Path,
    out_prefix: str,
    *,
    layouts: Sequence[str],
    dpi: int,
    title: str = "",
) -> List[Path]:
    generated: List[Path] = []
    out_dir.mkdir(parents=True, exist_ok=True)
    prefix = Path(out_prefix).stem or "teams"

    for layout in layouts:
        positions = LAYOUT_FNS[layout](graph)
        fig, ax = plt.subplots(figsize=(10, 7))
        node_colors = [TEAM_COLORS[graph.nodes[n]["team"]] for n in graph.nodes]
        nx.draw_networkx_nodes(graph, positions, ax=ax, node_color=node_colors, node_size=900,
                               edgecolors="#2f2f2f")
        labels = {n: f"{graph.nodes[n]['label']}\n{graph.nodes[n]['role']} {graph.nodes[n]['rating']}"
                  for n in graph.nodes}
        nx.draw_networkx_labels(graph, positions, labels=labels, ax=ax, font_size=8)
        for kind in ("wants", "avoids"):
            for met in (True, False):
                edges = [(u, v) for u, v, d in graph.edges(data=True) if d["kind"] == kind and d["met"] == met]
                if not edges:
                    continue
                nx.draw_networkx_edges(
                    graph,
                    positions,
                    edgelist=edges,
                    ax=ax,
                    edge_color=EDGE_COLORS[kind],
                    style="solid" if met else "dashed",
                    width=1.8 if met else 1.2,
                    arrows=True,
                    arrowsize=14,
                    connectionstyle="arc3,rad=0.12",
                    node_size=900,
                )
        legend = [
            Line2D([0], [0], marker="o", color="w", markerfacecolor=TEAM_COLORS["T1"], markersize=10, label="Team 1"),
            Line2D([0], [0], marker="o", color="w", markerfacecolor=TEAM_COLORS["T2"], markersize=10, label="Team 2"),
            Line2D([0], [0], color=EDGE_COLORS["wants"], label="wants"),
            Line2D([0], [0], color=EDGE_COLORS["avoids"], label="avoids"),
            Line2D([0], [0], color="#555555", linestyle="dashed", label="not honored"),
        ]
        ax.legend(handles=legend, loc="lower center", ncol=5, fontsize=8, frameon=False)
        ax.set_title(title or f"Social links ({layout} layout)")
        ax.set_axis_off()
        out_path = out_dir / f"{prefix}_{layout}.png"
        fig.tight_layout()
        fig.savefig(out_path, dpi=dpi)
        plt.close(fig)
        generated.append(out_path)
    return generated


def plot_score_distribution(
    candidates: Sequence[team_engine.Candidate],
    out_path: Path,
    *,
    dpi: int,
    stage: str = "",
) -> Path | None:
    if not candidates:
        return None
    scores = [c.score for c in candidates]
    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(scores, bins=min(20, max(5, len(scores) // 3)), color="#6a51a3", edgecolor="#2f2f2f", alpha=0.85)
    ax.axvline(scores[0], color="#d62728", linestyle="--", label=f"Option 1 ({scores[0]:g})")
    if len(scores) > 1:
        ax.axvline(scores[1], color="#ff7f0e", linestyle=":", label=f"Option 2 ({scores[1]:g})")
    ax.set_xlabel("Balance score")
    ax.set_ylabel("Canonical splits")
    ax.set_title(f"Ranked candidates{f' ({stage})' if stage else ''}: {len(scores)}")
    ax.legend(fontsize=8)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    return out_path


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    overrides = generate_teams.load_overrides(args.config)
    owner = generate_teams.pop_owner(args.owner, overrides)
    people = roster_io.load_roster(args.roster)
    try:
        selected = generate_teams.pick_roster(people, args.ids)
    except ValueError as e:
        raise SystemExit(str(e))
    result = team_engine.generate_teams(selected, owner_id=owner, overrides=overrides)
    if result is None:
        raise SystemExit(f"Select exactly {team_engine.ROSTER_SIZE} players (got {len(selected)}).")

    option = result.secondary if args.option == "secondary" else result.primary
    if option is None:
        raise SystemExit(result.secondary_reason)

    graph = build_social_graph(option)
    title = f"{args.option.title()} option - {option.stage}, score {option.score:g}, social {option.social_satisfaction_pct}%"
    outputs = draw_social_graph(graph, args.out_dir, args.out_prefix, layouts=args.layouts, dpi=args.dpi, title=title)
    for path in outputs:
        print(f"Wrote graph to {path}")

    if not args.skip_analysis:
        try:
            path = plot_score_distribution(result.candidates, args.out_dir / f"{args.out_prefix}_scores.png",
                                           dpi=args.dpi, stage=result.tier)
        except Exception as e:
            print(f"[warn] Could not produce score chart: {e}", file=sys.stderr)
        else:
            if path is not None:
                print(f"Wrote analysis chart to {path}")


if __name__ == "__main__":
    main()
