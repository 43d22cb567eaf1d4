"""
Benchmark harness: reference GEMM vs the naive kernel for one matrix size.

The run is a strictly ordered sequence of stages:

    INIT -> GENERATE -> UPLOAD -> REFERENCE_COMPUTE -> REFERENCE_TIMED
         -> NAIVE_COMPUTE -> NAIVE_TIMED -> VERIFY -> REPORT -> TEARDOWN

A fatal error (AllocationError, DeviceError) moves straight to ERROR and the
remaining stages are skipped. Device buffers are still released because they
live inside the device's `with` block.

Report lines are written as each phase completes:

    Matrix size is <N>
    Total memory required is <MB> MB
    Total time GPU CUBLAS is <s> sec
    Performance is <GFLOPs> GFlop/s
    Total time GPU NAIVE is <s> sec
    Performance is <GFLOPs> GFlop/s
    error is <residual>
    PASS | FAIL
"""

import enum
import sys

import attrs

from gemmbench.bench.config import BenchConfig
from gemmbench.bench.device import open_device
from gemmbench.bench.timer import PhaseTimer, gemm_flops
from gemmbench.errors import GemmBenchError
from gemmbench.kernels.matmul_naive import TileGrid, naive_matmul
from gemmbench.kernels.matmul_reference import reference_gemm
from gemmbench.kernels.matrix import ITEMSIZE, Matrix, generate_matrix, memory_required_mb
from gemmbench.kernels.verify import Verification, verify


class Stage(enum.Enum):
    INIT = "init"
    GENERATE = "generate"
    UPLOAD = "upload"
    REFERENCE_COMPUTE = "reference_compute"
    REFERENCE_TIMED = "reference_timed"
    NAIVE_COMPUTE = "naive_compute"
    NAIVE_TIMED = "naive_timed"
    VERIFY = "verify"
    REPORT = "report"
    TEARDOWN = "teardown"
    ERROR = "error"


STAGE_ORDER = tuple(s for s in Stage if s is not Stage.ERROR)


@attrs.define(frozen=True, slots=True)
class PhaseResult:
    kernel: str
    label: str
    seconds: float
    gflops: float


@attrs.define(frozen=True, slots=True)
class BenchReport:
    config: BenchConfig
    memory_mb: float
    reference: PhaseResult
    naive: PhaseResult
    verification: Verification

    def to_records(self):
        """One row per kernel, for a pandas DataFrame."""
        n = self.config.size
        rows = []
        for phase in (self.reference, self.naive):
            rows.append(
                {
                    "kernel": phase.kernel,
                    "N": n,
                    "backend": self.config.backend,
                    "tile_rows": self.config.tile_rows,
                    "tile_cols": self.config.tile_cols,
                    "flops": gemm_flops(n),
                    "bytes_moved": 3 * n * n * ITEMSIZE,
                    "latency_ms": phase.seconds * 1000,
                    "throughput_gflops": phase.gflops,
                    "residual": self.verification.residual,
                    "status": self.verification.status,
                }
            )
        return rows


class GemmBenchmark:
    """
    One benchmark run for a fixed configuration.

    `reference` and `naive_kernel` default to the NumPy reference GEMM and the
    naive tiled kernel; they are parameters so a run can be driven with
    substitutes.
    """

    def __init__(self, config, out=None, reference=reference_gemm, naive_kernel=naive_matmul):
        self.config = config
        self.out = out if out is not None else sys.stdout
        self.reference = reference
        self.naive_kernel = naive_kernel
        self.history = []

    @property
    def stage(self):
        return self.history[-1] if self.history else None

    def _enter(self, stage):
        self.history.append(stage)

    def _print(self, line):
        print(line, file=self.out)

    def run(self):
        self.history = []
        self._enter(Stage.INIT)
        try:
            report = self._run()
        except GemmBenchError:
            self._enter(Stage.ERROR)
            raise
        self._enter(Stage.TEARDOWN)
        return report

    def _run(self):
        cfg = self.config
        n = cfg.size
        grid = TileGrid(n, cfg.tile_rows, cfg.tile_cols)
        memory_mb = memory_required_mb(n)

        self._print(f"Matrix size is {n}")
        self._print(f"Total memory required is {memory_mb:f} MB")

        self._enter(Stage.GENERATE)
        seed_a, seed_b = cfg.seeds
        a = generate_matrix(Matrix.empty(n), seed_a)
        b = generate_matrix(Matrix.empty(n), seed_b)
        c_ref = Matrix.empty(n)
        c_naive = Matrix.empty(n)
        # Warmup calls write here so C_ref and C_naive are each written once
        scratch = Matrix.empty(n) if cfg.warmup else None

        # Device buffers are only referenced through the device, so closing it
        # releases them
        with open_device(cfg.backend) as device:
            self._enter(Stage.UPLOAD)
            device.upload("a", a)
            device.upload("b", b)
            device.allocate("c", c_naive)
            if scratch is not None:
                device.allocate("scratch", scratch)

            self._enter(Stage.REFERENCE_COMPUTE)
            for _ in range(cfg.warmup):
                self.reference(a, b, scratch, 1.0, 0.0)
            with PhaseTimer(n) as ref_timer:
                self.reference(a, b, c_ref, 1.0, 0.0)

            self._enter(Stage.REFERENCE_TIMED)
            reference = PhaseResult("reference", "CUBLAS", ref_timer.elapsed, ref_timer.gflops)
            self._print(f"Total time GPU CUBLAS is {reference.seconds:f} sec")
            self._print(f"Performance is {reference.gflops:f} GFlop/s")

            self._enter(Stage.NAIVE_COMPUTE)
            # First call JIT-compiles the kernel; keep compilation out of the timing
            for _ in range(cfg.warmup):
                self.naive_kernel(device["a"], device["b"], device["scratch"], grid, cfg.backend)
                device.synchronize()
            with PhaseTimer(n, sync=device.synchronize) as naive_timer:
                self.naive_kernel(device["a"], device["b"], device["c"], grid, cfg.backend)

            self._enter(Stage.NAIVE_TIMED)
            naive = PhaseResult("naive", "NAIVE", naive_timer.elapsed, naive_timer.gflops)
            self._print(f"Total time GPU NAIVE is {naive.seconds:f} sec")
            self._print(f"Performance is {naive.gflops:f} GFlop/s")
            device.download("c", c_naive)

            self._enter(Stage.VERIFY)
            verification = verify(c_ref, c_naive, cfg.threshold)

            self._enter(Stage.REPORT)
            self._print(f"error is {verification.residual:f}")
            self._print(verification.status)

        return BenchReport(
            config=cfg,
            memory_mb=memory_mb,
            reference=reference,
            naive=naive,
            verification=verification,
        )


def run_benchmark(config, out=None):
    return GemmBenchmark(config, out=out).run()
