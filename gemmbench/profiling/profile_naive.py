"""
Profiling script for the naive kernel.
Uses cProfile on the pure Python backend, where the per-element work is
visible as Python calls (the Numba backends compile it away).
"""

import cProfile
import pstats

from gemmbench.kernels.matmul_naive import TileGrid, naive_matmul
from gemmbench.kernels.matrix import Matrix, generate_matrix


def profile_naive(n=48, tile=16, seed=42, top=10, stream=None):
    """
    Profile one naive multiply of size n on the "python" backend.

    Args:
        n: matrix size (keep small, this backend is pure Python)
        tile: tile width and height
        seed: seed for A (B uses seed + 1)
        top: number of functions to print by cumulative time
        stream: where to print the stats (stdout by default)

    Returns:
        pstats.Stats for the run
    """
    A = generate_matrix(Matrix.empty(n), seed)
    B = generate_matrix(Matrix.empty(n), seed + 1)
    C = Matrix.empty(n)
    grid = TileGrid(n, tile, tile)

    profiler = cProfile.Profile()
    profiler.enable()
    naive_matmul(A.data, B.data, C.data, grid, backend="python")
    profiler.disable()

    stats = pstats.Stats(profiler, stream=stream)
    stats.sort_stats("cumulative")
    print(f"\nTop {top} functions by cumulative time:", file=stream)
    stats.print_stats(top)

    return stats


if __name__ == "__main__":
    print("=" * 60)
    print("Naive Kernel Profiling")
    print("=" * 60)

    profile_naive()

    print("\n" + "=" * 60)
    print("Profiling complete!")
    print("=" * 60)
