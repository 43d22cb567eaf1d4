"""
CUDA backend for the naive GEMM kernel (Numba CUDA).

One thread per output element and one thread block per tile, so the grid is
ceil(n / tile_rows) x ceil(n / tile_cols) blocks of tile_rows x tile_cols
threads. The x axis of the grid maps to rows: with the column-major layout,
neighbouring threads read neighbouring elements of A and write neighbouring
elements of C.
"""

from numba import cuda

from gemmbench.errors import DeviceError


@cuda.jit
def _naive_matmul_kernel(a, b, c, n):
    row, col = cuda.grid(2)

    # Threads past the matrix edge in partial tiles do nothing
    if row < n and col < n:
        acc = 0.0
        for k in range(n):
            # column-major: offset(row, col, n) = col * n + row
            acc += a[k * n + row] * b[col * n + k]
        c[col * n + row] = acc


def cuda_available():
    try:
        return cuda.is_available()
    except Exception:
        return False


def launch_naive_cuda(a, b, c, grid):
    """Launch the kernel on device arrays. Returns without synchronizing."""
    if not cuda_available():
        raise DeviceError("naive kernel launch (cuda)", "no CUDA device available")
    blocks = grid.tiles_per_axis
    threads = (grid.tile_rows, grid.tile_cols)
    _naive_matmul_kernel[blocks, threads](a, b, c, grid.n)
