"""
Wall-clock timer for one compute phase.

The timer calls the device's synchronize hook before stopping the clock, so
asynchronous work launched inside the block is included in the measurement.
"""

import time


def gemm_flops(n):
    """Floating-point operations in one n x n x n multiply-accumulate."""
    return 2 * n ** 3


class PhaseTimer:
    """
    Context manager bracketing exactly one compute phase.

    Example:
        with PhaseTimer(n, sync=device.synchronize) as t:
            naive_matmul(...)
        print(t.elapsed, t.gflops)
    """

    def __init__(self, n, sync=None):
        self.n = n
        self.sync = sync
        self._start = None
        self._elapsed = None

    def __enter__(self):
        self._elapsed = None
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            return False
        if self.sync is not None:
            self.sync()
        self._elapsed = time.perf_counter() - self._start
        return False

    @property
    def elapsed(self):
        """Elapsed seconds of the completed phase."""
        if self._elapsed is None:
            raise RuntimeError("Phase has not completed")
        return self._elapsed

    @property
    def gflops(self):
        if self.elapsed == 0:
            return float("inf")
        return gemm_flops(self.n) / self.elapsed / 1e9
