# visualize.py
import os

import matplotlib.pyplot as plt
import numpy as np


def _prepare(outpath):
    directory = os.path.dirname(outpath)
    if directory:
        os.makedirs(directory, exist_ok=True)


def plot_miss_rates(summary, outpath):
    _prepare(outpath)
    labels = ["L1", "L2"]
    rates = [summary["l1_miss_rate"], summary["l2_miss_rate"]]
    plt.figure(figsize=(4, 4))
    bars = plt.bar(labels, rates, color=["tab:blue", "tab:orange"])
    for bar, rate in zip(bars, rates):
        plt.annotate(f"{rate:.4f}", (bar.get_x() + bar.get_width() / 2, bar.get_height()),
                     ha="center", va="bottom")
    plt.ylim(0, max(1.0, max(rates) * 1.1))
    plt.title("Miss Rate per Level")
    plt.ylabel("Miss rate")
    plt.tight_layout()
    plt.savefig(outpath)
    plt.close()


def plot_traffic_breakdown(summary, outpath):
    _prepare(outpath)
    labels = ["Misses", "Writebacks", "Invalidation writebacks"]
    sizes = [summary["traffic_misses"], summary["traffic_writebacks"],
             summary["traffic_invalidation_writebacks"]]
    plt.figure(figsize=(5, 4))
    if sum(sizes) == 0:
        # pie() cannot draw an all-zero wedge set
        plt.text(0.5, 0.5, "No memory traffic", ha="center", va="center")
        plt.axis("off")
    else:
        kept = [(l, s) for l, s in zip(labels, sizes) if s > 0]
        plt.pie([s for _, s in kept], labels=[l for l, _ in kept], autopct="%1.1f%%")
    plt.title(f"Main Memory Traffic ({summary['memory_traffic']} blocks)")
    plt.tight_layout()
    plt.savefig(outpath)
    plt.close()


def plot_miss_curve(curve, outpath):
    """Cumulative L1 miss rate after each trace command."""
    _prepare(outpath)
    curve = np.asarray(curve)
    plt.figure(figsize=(8, 4))
    plt.plot(np.arange(1, len(curve) + 1), curve, linewidth=0.8)
    plt.title("Cumulative L1 Miss Rate")
    plt.xlabel("Trace position")
    plt.ylabel("Miss rate")
    plt.grid(True)
    plt.tight_layout()
    plt.savefig(outpath)
    plt.close()
