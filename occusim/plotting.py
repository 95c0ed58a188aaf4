"""
Maps and diagnostic figures for simulated and fitted occupancy surfaces.
"""

from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.cm import ScalarMappable
from matplotlib.colors import Normalize


def plot_map(gdf, column, title, out_file, show=False, dpi=300, vmin=None, vmax=None, cmap="viridis"):
    fig, ax = plt.subplots(figsize=(9, 9))

    gdf.plot(
        column=column,
        ax=ax,
        legend=True,
        cmap=cmap,
        vmin=vmin,
        vmax=vmax
    )

    ax.set_axis_off()
    ax.set_title(title, fontsize=14)

    out_file = Path(out_file)
    out_file.parent.mkdir(parents=True, exist_ok=True)

    fig.savefig(out_file, dpi=dpi, bbox_inches="tight")
    print("Saved:", out_file)

    if show:
        plt.show()
    plt.close(fig)


def plot_surface_panels(gdf, columns, titles, out_file, dpi=300, shared_scale=(0, 1), cmap="viridis"):
    """
    Stacked maps, one per column. Columns sharing the probability scale get a
    single colour bar; pass shared_scale=None for independent legends.
    """
    fig, axes = plt.subplots(
        len(columns), 1,
        figsize=(8, 5 * len(columns)),
        constrained_layout=True,
        squeeze=False,
    )
    axes = axes[:, 0]

    norm = Normalize(*shared_scale) if shared_scale is not None else None
    for ax, column, title in zip(axes, columns, titles):
        if norm is not None:
            gdf.plot(column=column, ax=ax, cmap=cmap, norm=norm)
        else:
            gdf.plot(column=column, ax=ax, cmap=cmap, legend=True)
        ax.set_title(title)
        ax.set_axis_off()

    if norm is not None:
        sm = ScalarMappable(norm=norm, cmap=cmap)
        sm.set_array([])
        cbar = fig.colorbar(sm, ax=list(axes), orientation="horizontal", fraction=0.04, pad=0.02)
        cbar.set_label("Occupancy probability (ψ)")

    out_file = Path(out_file)
    out_file.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_file, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    print("Saved:", out_file)


def plot_truth_vs_estimate(table, out_file, dpi=300):
    """Posterior mean with HDI bar per parameter; true values as red crosses."""
    table = table.reset_index(drop=True)
    pos = np.arange(len(table))

    # matplotlib rejects negative error lengths
    lower = np.clip(table["mean"] - table["hdi_low"], 0, None)
    upper = np.clip(table["hdi_high"] - table["mean"], 0, None)

    fig, ax = plt.subplots(figsize=(7, 0.6 * len(table) + 1.5))
    ax.errorbar(
        table["mean"], pos,
        xerr=[lower, upper],
        fmt="o", color="black", capsize=3, label="Posterior mean (HDI)"
    )
    if "true_value" in table:
        known = table["true_value"].notna().to_numpy()
        ax.scatter(table.loc[known, "true_value"], pos[known], marker="x", color="red", zorder=3, label="True value")

    ax.set_yticks(pos)
    ax.set_yticklabels(table["parameter"])
    ax.invert_yaxis()
    ax.axvline(0, color="grey", linewidth=0.5)
    ax.set_xlabel("Value")
    ax.legend(loc="best", frameon=True)

    out_file = Path(out_file)
    out_file.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_file, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    print("Saved:", out_file)
