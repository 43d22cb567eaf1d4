"""
Benchmark script for dense GEMM: NumPy/BLAS reference vs the naive kernel.

Single run (fixed size, report lines on stdout):
    python -m gemmbench.bench.bench_gemm --size 1024

Size sweep (report per size, summary table and CSV under --out-dir):
    python -m gemmbench.bench.bench_gemm --sweep 256 512 1000 --plot
"""

import argparse
import sys
from pathlib import Path

import pandas as pd

from gemmbench.bench.config import (
    DEFAULT_SEED,
    DEFAULT_SIZE,
    DEFAULT_SWEEP,
    DEFAULT_WARMUP,
    BenchConfig,
)
from gemmbench.bench.harness import run_benchmark
from gemmbench.errors import GemmBenchError
from gemmbench.kernels.matmul_naive import BACKENDS, DEFAULT_TILE
from gemmbench.kernels.matrix import check_size


RESULTS_CSV = "gemm_results.csv"


def benchmark_sizes(sizes, base_config, out=None):
    """
    Run the benchmark once per matrix size.

    Args:
        sizes: iterable of matrix sizes N
        base_config: BenchConfig supplying everything except the size
        out: stream for the per-run report lines (stdout by default)

    Returns:
        DataFrame with one row per (size, kernel)
    """
    results = []
    for n in sizes:
        config = BenchConfig(
            size=n,
            tile_rows=base_config.tile_rows,
            tile_cols=base_config.tile_cols,
            seed=base_config.seed,
            backend=base_config.backend,
            warmup=base_config.warmup,
            threshold=base_config.threshold,
        )
        report = run_benchmark(config, out=out)
        results.extend(report.to_records())
    return pd.DataFrame(results)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="gemm-bench",
        description="Benchmark a naive parallel GEMM kernel against the NumPy/BLAS reference.",
    )
    parser.add_argument("--size", type=int, default=DEFAULT_SIZE, help="Matrix side length N.")
    parser.add_argument("--tile-rows", type=int, default=DEFAULT_TILE)
    parser.add_argument("--tile-cols", type=int, default=DEFAULT_TILE)
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Seed for A (B uses seed + 1).")
    parser.add_argument("--backend", default="cpu", choices=list(BACKENDS))
    parser.add_argument("--warmup", type=int, default=DEFAULT_WARMUP, help="Untimed runs per phase before timing.")
    parser.add_argument("--threads", type=int, default=None, help="Numba thread count for the cpu backend.")
    parser.add_argument(
        "--sweep",
        type=int,
        nargs="*",
        default=None,
        help=f"Run a size sweep instead of a single run (default sizes: {list(DEFAULT_SWEEP)}).",
    )
    parser.add_argument("--out-dir", type=Path, default=Path("results"), help="Where sweep CSV/plots go.")
    parser.add_argument("--plot", action="store_true", help="Plot sweep results after saving them.")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = BenchConfig(
            size=args.size,
            tile_rows=args.tile_rows,
            tile_cols=args.tile_cols,
            seed=args.seed,
            backend=args.backend,
            warmup=args.warmup,
        )
        sizes = None
        if args.sweep is not None:
            sizes = [check_size(n) for n in (args.sweep or DEFAULT_SWEEP)]
    except ValueError as e:
        parser.error(str(e))

    if args.threads is not None:
        # Must happen before the first parallel call
        from numba import set_num_threads

        try:
            set_num_threads(args.threads)
        except ValueError as e:
            parser.error(str(e))

    try:
        if sizes is None:
            run_benchmark(config)
            return 0
        df = benchmark_sizes(sizes, config)
    except GemmBenchError as e:
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        return e.exit_code

    args.out_dir.mkdir(parents=True, exist_ok=True)
    output_path = args.out_dir / RESULTS_CSV
    df.to_csv(output_path, index=False)
    print(f"\nResults saved to: {output_path}")

    print("\n" + "=" * 60)
    print("Summary")
    print("=" * 60)
    print(df.to_string(index=False))

    if args.plot:
        from gemmbench.bench.plot_results import plot_gemm_results

        plot_gemm_results(args.out_dir)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
