# src/jettree/plotting_utils.py
import numpy as np
import matplotlib.pyplot as plt
import mplhep as hep


def _label(ax, exp, llabel, rlabel):
    hep.label.exp_label(exp=exp, llabel=llabel, rlabel=rlabel, loc=0, ax=ax, fontsize=12)


def plot_hist_step(
    edges, counts, outputfile, xlabel,
    ylabel="Entries",
    title=None,
    exp="sPHENIX",
    llabel="Simulation",
    rlabel="p+p 200 GeV",
    logy=False,
):
    edges = np.asarray(edges, dtype=float)
    counts = np.asarray(counts, dtype=float)

    hep.style.use("ROOT")
    fig, ax = plt.subplots(figsize=(7.0, 5.2), dpi=300)

    ax.stairs(counts, edges, linewidth=2.0)

    ax.set_xlabel(xlabel, fontsize=13)
    ax.set_ylabel(ylabel, fontsize=13)
    if logy and np.any(counts > 0):
        ax.set_yscale("log")
    ax.grid(alpha=0.22)

    _label(ax, exp, llabel, rlabel)
    if title:
        ax.text(0.05, 0.92, title, transform=ax.transAxes, ha="left", va="top",
                fontsize=12, fontweight="bold")

    plt.tight_layout()
    plt.savefig(outputfile, dpi=300)
    plt.close(fig)


def plot_hist_overlay(
    hists, outputfile, xlabel,
    ylabel="Entries",
    title=None,
    colors=None,
    exp="sPHENIX",
    llabel="Simulation",
    rlabel="p+p 200 GeV",
    density=False,
    logy=False,
):
    """
    hists: dict label -> (edges, counts), drawn as step lines on one axis.
    With ``density`` each curve is normalized to unit area.
    """
    hep.style.use("ROOT")
    fig, ax = plt.subplots(figsize=(7.0, 5.2), dpi=300)

    drawn = 0
    for i, (lab, (edges, counts)) in enumerate(hists.items()):
        edges = np.asarray(edges, dtype=float)
        counts = np.asarray(counts, dtype=float)
        if density:
            norm = float(np.sum(counts * np.diff(edges)))
            if norm <= 0:
                continue
            counts = counts / norm
        col = colors[i % len(colors)] if colors else None
        ax.stairs(counts, edges, linewidth=2.0, label=lab, color=col)
        drawn += 1

    ax.set_xlabel(xlabel, fontsize=13)
    ax.set_ylabel("Normalized" if density else ylabel, fontsize=13)
    if logy:
        ax.set_yscale("log")
    ax.grid(alpha=0.22)

    _label(ax, exp, llabel, rlabel)
    if title:
        ax.text(0.05, 0.92, title, transform=ax.transAxes, ha="left", va="top",
                fontsize=12, fontweight="bold")

    if drawn:
        ax.legend(frameon=False, fontsize=10)
    plt.tight_layout()
    plt.savefig(outputfile, dpi=300)
    plt.close(fig)


def plot_acceptance_summary(
    kinds, seen, accepted, outputfile,
    title=None,
    exp="sPHENIX",
    llabel="Simulation",
    rlabel="p+p 200 GeV",
):
    """Seen vs accepted object counts per kind, with the accepted fraction annotated."""
    kinds = list(kinds)
    seen = np.asarray(seen, dtype=float)
    accepted = np.asarray(accepted, dtype=float)
    frac = np.divide(accepted, seen, out=np.zeros_like(accepted), where=(seen > 0))

    hep.style.use("ROOT")
    fig, ax = plt.subplots(figsize=(9.0, 5.2), dpi=300)

    x = np.arange(len(kinds))
    w = 0.38
    ax.bar(x - w/2, seen, width=w, label="seen", color="#9ca3af")
    ax.bar(x + w/2, accepted, width=w, label="accepted", color="#2563eb")

    for xi, (a, f) in enumerate(zip(accepted, frac)):
        if seen[xi] > 0:
            ax.text(xi + w/2, a, f"{100*f:.0f}%", ha="center", va="bottom", fontsize=8)

    ax.set_xticks(x)
    ax.set_xticklabels(kinds, rotation=30, ha="right", fontsize=10)
    ax.set_ylabel("Objects", fontsize=13)
    if np.any(seen > 0):
        ax.set_yscale("log")
    ax.grid(axis="y", alpha=0.22)

    _label(ax, exp, llabel, rlabel)
    if title:
        ax.text(0.05, 0.92, title, transform=ax.transAxes, ha="left", va="top",
                fontsize=12, fontweight="bold")

    ax.legend(frameon=False, fontsize=10, loc="upper right")
    plt.tight_layout()
    plt.savefig(outputfile, dpi=300)
    plt.close(fig)
