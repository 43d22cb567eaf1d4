"""
Square float64 matrix with a fixed column-major layout.

Every producer and consumer of a matrix (generation, the naive kernel
backends, the reference GEMM and verification) addresses elements through
`offset`, so the layout cannot drift between them:

    offset(row, col, n) = col * n + row
"""

import attrs
import numpy as np
from numba import njit

from gemmbench.errors import AllocationError


DTYPE = np.float64
ITEMSIZE = np.dtype(DTYPE).itemsize


@njit(inline="always")
def offset(row, col, n):
    """Linear offset of element (row, col) in an n x n column-major buffer."""
    return col * n + row


def check_size(n):
    """Reject anything that is not a positive integer side length."""
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
        raise ValueError(f"Matrix size must be an integer, got {n!r}")
    if n <= 0:
        raise ValueError(f"Matrix size must be positive, got {n}")
    return int(n)


def _host_buffer(count):
    return np.empty(count, dtype=DTYPE)


def allocate_host(n):
    """Allocate an uninitialized flat buffer for an n x n matrix."""
    count = n * n
    nbytes = count * ITEMSIZE
    if nbytes > np.iinfo(np.intp).max:
        raise AllocationError(f"host allocation of {nbytes} bytes failed: exceeds addressable size")
    try:
        return _host_buffer(count)
    except (MemoryError, ValueError) as e:
        # numpy raises ValueError for array sizes it cannot represent
        raise AllocationError(f"host allocation of {nbytes} bytes failed") from e


def _check_buffer(instance, attribute, value):
    n = instance.n
    if value.dtype != DTYPE or value.ndim != 1 or value.shape[0] != n * n:
        raise ValueError(
            f"Matrix buffer must be a flat float64 array of {n * n} elements, "
            f"got dtype={value.dtype} shape={value.shape}"
        )
    if not value.flags.c_contiguous:
        raise ValueError("Matrix buffer must be contiguous")


@attrs.define(eq=False)
class Matrix:
    """
    Dense n x n float64 matrix owning a flat column-major buffer.

    Use the constructors (`empty`, `zeros`, `from_rows`) rather than building
    buffers by hand; they enforce the layout.
    """

    n: int = attrs.field(converter=check_size)
    data: np.ndarray = attrs.field(validator=_check_buffer, repr=False)

    @classmethod
    def empty(cls, n):
        n = check_size(n)
        return cls(n, allocate_host(n))

    @classmethod
    def zeros(cls, n):
        m = cls.empty(n)
        m.data.fill(0.0)
        return m

    @classmethod
    def from_rows(cls, rows):
        """Build a matrix from row-major nested sequences (math notation)."""
        arr = np.asarray(rows, dtype=DTYPE)
        if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
            raise ValueError(f"Expected a square 2D matrix, got shape {arr.shape}")
        m = cls.empty(arr.shape[0])
        m.view()[...] = arr
        return m

    @property
    def nbytes(self):
        return self.data.nbytes

    def __getitem__(self, index):
        row, col = index
        self._check_index(row, col)
        return self.data[offset(row, col, self.n)]

    def __setitem__(self, index, value):
        row, col = index
        self._check_index(row, col)
        self.data[offset(row, col, self.n)] = value

    def _check_index(self, row, col):
        if not (0 <= row < self.n and 0 <= col < self.n):
            raise IndexError(f"({row}, {col}) out of range for {self.n}x{self.n} matrix")

    def view(self):
        """2D (row, col) view sharing this matrix's buffer."""
        return self.data.reshape((self.n, self.n), order="F")

    def to_rows(self):
        """Copy out as a row-major 2D array."""
        return np.ascontiguousarray(self.view())


def generate_matrix(matrix, seed):
    """
    Fill `matrix` with uniform values in [0, 1).

    Values are drawn from a generator seeded with `seed` and written in
    offset order, one draw per element, so the same seed always produces the
    same matrix.
    """
    rng = np.random.default_rng(seed)
    rng.random(out=matrix.data)
    return matrix


def memory_required_mb(n, count=3):
    """Host memory for `count` n x n float64 matrices, in MB (1e6 bytes)."""
    return count * n * n * ITEMSIZE / 1e6
