"""
Plot GEMM sweep results from the CSV written by bench_gemm.
Usage: python -m gemmbench.bench.plot_results [results_dir]
"""

import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pandas as pd

from gemmbench.bench.bench_gemm import RESULTS_CSV


KERNEL_LABELS = {"reference": "Reference (BLAS)", "naive": "Naive"}


def plot_gemm_results(results_dir):
    """Plot latency and throughput per kernel against N. Returns the PNG path."""
    results_dir = Path(results_dir)
    csv_path = results_dir / RESULTS_CSV
    if not csv_path.exists():
        print(f"Results file not found: {csv_path}")
        return None

    df = pd.read_csv(csv_path)
    plots_dir = results_dir / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)

    fig, axes = plt.subplots(1, 2, figsize=(14, 5))

    for kernel, marker in (("reference", "s"), ("naive", "^")):
        data = df[df["kernel"] == kernel].sort_values("N")
        if data.empty:
            continue
        label = KERNEL_LABELS[kernel]
        axes[0].semilogy(data["N"], data["latency_ms"], "-", label=label, marker=marker)
        axes[1].plot(data["N"], data["throughput_gflops"], "-", label=label, marker=marker)

    axes[0].set_xlabel("Matrix Dimension (N)")
    axes[0].set_ylabel("Latency (ms)")
    axes[0].set_title("GEMM Latency Comparison")
    axes[0].legend()
    axes[0].grid(True, alpha=0.3)

    axes[1].set_xlabel("Matrix Dimension (N)")
    axes[1].set_ylabel("Throughput (GFLOP/s)")
    axes[1].set_title("GEMM Throughput Comparison")
    axes[1].legend()
    axes[1].grid(True, alpha=0.3)

    plt.tight_layout()
    out_path = plots_dir / "gemm_results.png"
    plt.savefig(out_path, dpi=150)
    print(f"Saved plot: {out_path}")
    plt.close(fig)
    return out_path


if __name__ == "__main__":
    plot_gemm_results(sys.argv[1] if len(sys.argv) > 1 else "results")
