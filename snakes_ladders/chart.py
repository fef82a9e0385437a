"""Histogram of how many rolls simulated games took to finish."""

from __future__ import annotations

import matplotlib
matplotlib.use("Agg")  # non-interactive backend

import matplotlib.pyplot as plt


def make_length_chart(
    lengths: list[int],
    output_path: str = "game_lengths.png",
    title: str = "Snakes & Ladders: rolls per game",
) -> str:
    """Create a histogram of game lengths with the mean marked.

    Returns the path to the saved PNG.
    """
    if not lengths:
        raise ValueError("no finished games to chart")

    mean = sum(lengths) / len(lengths)
    bins = min(40, max(5, len(set(lengths))))

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.hist(lengths, bins=bins, color="#4A90D9", edgecolor="white")
    ax.axvline(mean, color="#E53E3E", linestyle="--", linewidth=2)
    ax.text(
        mean, ax.get_ylim()[1] * 0.95, f" mean {mean:.1f}",
        color="#E53E3E", va="top", fontsize=11, fontweight="bold",
    )

    ax.set_xlabel("Rolls until someone reaches 100")
    ax.set_ylabel("Games")
    ax.set_title(f"{title} (n={len(lengths)})", fontsize=14, fontweight="bold")

    plt.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path
