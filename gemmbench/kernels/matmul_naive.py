"""
Naive parallel GEMM kernel.

One independent unit of work per output element:

- The n x n output space is split into tile_rows x tile_cols tiles; the grid
  has ceil(n / tile_rows) x ceil(n / tile_cols) tiles, so the launched unit
  space can extend past n.
- Every unit checks the bounds predicate (row < n and col < n) before it
  reads or writes anything. Out-of-range units do nothing.
- An in-range unit accumulates A[row, k] * B[k, col] for k = 0..n-1 in a
  local float64 accumulator and writes C[row, col] once.

No cache or register blocking of the reduction and no fastmath: this kernel
is the performance floor the reference GEMM is measured against, and its
summation order must stay k-ascending.

Backends share the same guard-then-compute logic:
- "cpu": Numba parallel loop over tiles (prange)
- "cuda": Numba CUDA kernel, one thread per element, one block per tile
- "python": pure Python loop over the same grid (slow, small sizes only)
"""

import attrs
from numba import njit, prange

from gemmbench.errors import DeviceError
from gemmbench.kernels.matrix import check_size, offset


DEFAULT_TILE = 16
BACKENDS = ("cpu", "cuda", "python")


def _check_tile(instance, attribute, value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{attribute.name} must be a positive integer, got {value!r}")


@attrs.define(frozen=True)
class TileGrid:
    """Tile decomposition of the n x n output index space."""

    n: int = attrs.field(converter=check_size)
    tile_rows: int = attrs.field(default=DEFAULT_TILE, validator=_check_tile)
    tile_cols: int = attrs.field(default=DEFAULT_TILE, validator=_check_tile)

    @property
    def tiles_per_axis(self):
        return (
            (self.n + self.tile_rows - 1) // self.tile_rows,
            (self.n + self.tile_cols - 1) // self.tile_cols,
        )

    @property
    def launched_shape(self):
        """Size of the launched unit space, including out-of-range units."""
        tiles_r, tiles_c = self.tiles_per_axis
        return tiles_r * self.tile_rows, tiles_c * self.tile_cols

    @property
    def launched_units(self):
        rows, cols = self.launched_shape
        return rows * cols

    def in_bounds(self, row, col):
        return row < self.n and col < self.n

    def iter_tiles(self):
        """Yield (first_row, first_col) of every tile in launch order."""
        tiles_r, tiles_c = self.tiles_per_axis
        for tile in range(tiles_r * tiles_c):
            yield (tile % tiles_r) * self.tile_rows, (tile // tiles_r) * self.tile_cols

    def iter_units(self):
        """Yield (row, col) for every launched unit, in or out of range."""
        for row0, col0 in self.iter_tiles():
            for tc in range(self.tile_cols):
                for tr in range(self.tile_rows):
                    yield row0 + tr, col0 + tc


@njit(parallel=True, cache=True)
def _naive_matmul_cpu(a, b, c, n, tile_rows, tile_cols):
    tiles_r = (n + tile_rows - 1) // tile_rows
    tiles_c = (n + tile_cols - 1) // tile_cols

    # Tiles are independent; each writes a disjoint set of C cells
    for tile in prange(tiles_r * tiles_c):
        row0 = (tile % tiles_r) * tile_rows
        col0 = (tile // tiles_r) * tile_cols
        for tc in range(tile_cols):
            col = col0 + tc
            for tr in range(tile_rows):
                row = row0 + tr
                if row < n and col < n:
                    acc = 0.0
                    for k in range(n):
                        acc += a[offset(row, k, n)] * b[offset(k, col, n)]
                    c[offset(row, col, n)] = acc


def naive_element(a, b, n, row, col):
    """Dot product of row `row` of A and column `col` of B, k ascending."""
    acc = 0.0
    for k in range(n):
        acc += a[offset(row, k, n)] * b[offset(k, col, n)]
    return acc


def _naive_matmul_python(a, b, c, grid):
    n = grid.n
    for row, col in grid.iter_units():
        if grid.in_bounds(row, col):
            c[offset(row, col, n)] = naive_element(a, b, n, row, col)


def _check_operands(a, b, c, grid):
    expected = grid.n * grid.n
    for name, buf in (("A", a), ("B", b), ("C", c)):
        if buf.shape != (expected,):
            raise ValueError(
                f"{name} has shape {buf.shape}, expected ({expected},) for n={grid.n}"
            )


def naive_matmul(a, b, c, grid, backend="cpu"):
    """
    Compute C = A @ B with the naive tiled kernel.

    Args:
        a, b, c: flat column-major float64 buffers of n * n elements. For the
            "cuda" backend these are device arrays.
        grid: TileGrid describing n and the tile dimensions
        backend: one of BACKENDS

    Returns:
        c, once the kernel has been dispatched. The "cuda" backend is
        asynchronous; synchronize the device before reading c.

    Raises:
        ValueError: unknown backend or operand sizes that do not match grid.n
        DeviceError: the kernel failed to launch or run
    """
    if backend not in BACKENDS:
        raise ValueError(f"Unknown backend {backend!r}. Known: {list(BACKENDS)}")
    _check_operands(a, b, c, grid)

    try:
        if backend == "cpu":
            _naive_matmul_cpu(a, b, c, grid.n, grid.tile_rows, grid.tile_cols)
        elif backend == "cuda":
            from gemmbench.kernels.matmul_naive_cuda import launch_naive_cuda

            launch_naive_cuda(a, b, c, grid)
        else:
            _naive_matmul_python(a, b, c, grid)
    except DeviceError:
        raise
    except Exception as e:
        raise DeviceError(f"naive kernel launch ({backend})", e) from e
    return c


if __name__ == "__main__":
    from gemmbench.kernels.matrix import Matrix, generate_matrix
    from gemmbench.kernels.verify import verify

    n = 100
    A = generate_matrix(Matrix.empty(n), seed=42)
    B = generate_matrix(Matrix.empty(n), seed=43)
    C = Matrix.empty(n)

    print("Running naive matmul (cpu)...")
    naive_matmul(A.data, B.data, C.data, TileGrid(n))

    result = verify(A.view() @ B.view(), C)
    print(f"error is {result.residual:f}")
    print(result.status)
