"""
Reference GEMM through NumPy (BLAS-backed @ operator).

This is the ground truth and the performance baseline the naive kernel is
compared against. It computes C = alpha * A @ B + beta * C in place on C's
buffer and returns once C is valid for reading.
"""

from gemmbench.errors import AllocationError, DeviceError


def reference_gemm(a, b, c, alpha=1.0, beta=0.0):
    """
    Compute C = alpha * A @ B + beta * C using NumPy.

    Args:
        a, b, c: Matrix instances of the same size
        alpha, beta: GEMM scalars. As in BLAS, when beta == 0 the previous
            contents of C are not read (so uninitialized C is fine).

    Returns:
        c
    """
    if not (a.n == b.n == c.n):
        raise ValueError(f"Size mismatch: A is {a.n}, B is {b.n}, C is {c.n}")

    out = c.view()
    try:
        product = a.view() @ b.view()
        if alpha != 1.0:
            product *= alpha
        if beta == 0.0:
            out[...] = product
        else:
            out *= beta
            out += product
    except MemoryError as e:
        raise AllocationError("reference GEMM temporary allocation failed") from e
    except Exception as e:
        raise DeviceError("reference GEMM", e) from e
    return c


if __name__ == "__main__":
    from gemmbench.kernels.matrix import Matrix

    A = Matrix.from_rows([[1, 2], [3, 4]])
    B = Matrix.from_rows([[5, 6], [7, 8]])
    C = Matrix.empty(2)

    print("Running reference GEMM...")
    reference_gemm(A, B, C)
    print(C.to_rows())
