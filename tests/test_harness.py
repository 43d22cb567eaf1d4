from __future__ import annotations

import gc
import io
import re
import weakref

import numpy as np
import pytest

from gemmbench.bench import harness
from gemmbench.bench.config import BenchConfig
from gemmbench.bench.device import HostDevice
from gemmbench.bench.harness import STAGE_ORDER, GemmBenchmark, Stage
from gemmbench.errors import AllocationError, DeviceError
from gemmbench.kernels import matrix
from gemmbench.kernels.matmul_naive import naive_matmul


FLOAT = r"\d+\.\d{6}"


def _bad_kernel(a, b, c, grid, backend):
    c[:] = 100.0
    return c


def _failing_kernel(a, b, c, grid, backend):
    raise DeviceError("naive kernel launch (test)", "simulated")


@pytest.mark.parametrize("backend", ["cpu", "python"])
def test_report_lines_in_order(backend: str) -> None:
    out = io.StringIO()
    bench = GemmBenchmark(BenchConfig(size=8, backend=backend), out=out)
    report = bench.run()

    lines = out.getvalue().splitlines()
    assert len(lines) == 8
    assert lines[0] == "Matrix size is 8"
    assert lines[1] == "Total memory required is 0.001536 MB"
    assert re.fullmatch(rf"Total time GPU CUBLAS is {FLOAT} sec", lines[2])
    assert re.fullmatch(rf"Performance is ({FLOAT}|inf) GFlop/s", lines[3])
    assert re.fullmatch(rf"Total time GPU NAIVE is {FLOAT} sec", lines[4])
    assert re.fullmatch(rf"Performance is ({FLOAT}|inf) GFlop/s", lines[5])
    assert re.fullmatch(rf"error is {FLOAT}", lines[6])
    assert lines[7] == "PASS"

    assert report.verification.passed
    assert report.verification.residual < 1e-20
    assert bench.history == list(STAGE_ORDER)
    assert bench.stage is Stage.TEARDOWN


def test_partial_tile_size_passes() -> None:
    out = io.StringIO()
    report = GemmBenchmark(BenchConfig(size=37, tile_rows=16, tile_cols=8), out=out).run()
    assert report.verification.status == "PASS"


def test_failed_verification_is_reported_not_raised() -> None:
    out = io.StringIO()
    bench = GemmBenchmark(BenchConfig(size=4, backend="python"), out=out, naive_kernel=_bad_kernel)
    report = bench.run()

    lines = out.getvalue().splitlines()
    assert lines[-1] == "FAIL"
    assert report.verification.status == "FAIL"
    assert report.verification.residual > 10.0
    assert bench.stage is Stage.TEARDOWN


def test_kernel_failure_skips_remaining_stages(monkeypatch: pytest.MonkeyPatch) -> None:
    devices: list[HostDevice] = []

    def _open(backend):
        dev = HostDevice()
        devices.append(dev)
        return dev

    monkeypatch.setattr(harness, "open_device", _open)
    out = io.StringIO()
    bench = GemmBenchmark(BenchConfig(size=4, backend="python"), out=out, naive_kernel=_failing_kernel)

    with pytest.raises(DeviceError):
        bench.run()

    assert bench.history[-1] is Stage.ERROR
    assert Stage.NAIVE_COMPUTE in bench.history
    for skipped in (Stage.NAIVE_TIMED, Stage.VERIFY, Stage.REPORT, Stage.TEARDOWN):
        assert skipped not in bench.history
    assert devices and devices[0].closed
    assert "NAIVE" not in out.getvalue()


def test_allocation_failure_aborts_before_compute(monkeypatch: pytest.MonkeyPatch) -> None:
    def _no_memory(count):
        raise MemoryError

    monkeypatch.setattr(matrix, "_host_buffer", _no_memory)
    bench = GemmBenchmark(BenchConfig(size=4), out=io.StringIO())

    with pytest.raises(AllocationError):
        bench.run()
    assert bench.history == [Stage.INIT, Stage.GENERATE, Stage.ERROR]


def test_report_records() -> None:
    report = GemmBenchmark(BenchConfig(size=4, backend="python"), out=io.StringIO()).run()
    rows = report.to_records()

    assert [r["kernel"] for r in rows] == ["reference", "naive"]
    for r in rows:
        assert r["N"] == 4
        assert r["flops"] == 128
        assert r["bytes_moved"] == 384
        assert r["status"] == "PASS"
        assert r["latency_ms"] >= 0.0


def test_seeds_derived_from_one_seed() -> None:
    assert BenchConfig(seed=7).seeds == (7, 8)


@pytest.mark.parametrize(
    "kwargs",
    [{"size": 0}, {"tile_rows": 0}, {"tile_cols": -1}, {"backend": "opencl"}, {"warmup": -1}],
)
def test_invalid_config_rejected(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        BenchConfig(**kwargs)


def test_warmup_writes_do_not_touch_result_buffers() -> None:
    ref_outputs = []
    naive_outputs = []

    def _reference(a, b, c, alpha, beta):
        ref_outputs.append(c)
        c.data[:] = 0.0
        return c

    def _naive(a, b, c, grid, backend):
        naive_outputs.append(c)
        c[:] = 0.0
        return c

    bench = GemmBenchmark(
        BenchConfig(size=4, backend="python", warmup=2),
        out=io.StringIO(),
        reference=_reference,
        naive_kernel=_naive,
    )
    report = bench.run()

    assert report.verification.status == "PASS"
    # two warmup calls into scratch, then one timed call into the result
    assert len(ref_outputs) == len(naive_outputs) == 3
    timed_ref, timed_naive = ref_outputs[-1], naive_outputs[-1]
    assert all(c is not timed_ref for c in ref_outputs[:-1])
    assert all(c is not timed_naive for c in naive_outputs[:-1])


class _CopyingDevice(HostDevice):
    """Host device that keeps private copies, like device memory."""

    def __init__(self):
        super().__init__()
        self.refs = []
        self.alive_after_close = None

    def upload(self, key, matrix):
        buf = matrix.data.copy()
        self.refs.append(weakref.ref(buf))
        self._buffers[key] = buf

    def allocate(self, key, matrix):
        buf = np.empty_like(matrix.data)
        self.refs.append(weakref.ref(buf))
        self._buffers[key] = buf

    def download(self, key, matrix):
        matrix.data[:] = self._buffers[key]
        return matrix

    def close(self):
        super().close()
        gc.collect()
        self.alive_after_close = [r for r in self.refs if r() is not None]


@pytest.mark.parametrize("fail", [False, True])
def test_closing_device_releases_its_buffers(monkeypatch: pytest.MonkeyPatch, fail: bool) -> None:
    devices: list[_CopyingDevice] = []

    def _open(backend):
        dev = _CopyingDevice()
        devices.append(dev)
        return dev

    monkeypatch.setattr(harness, "open_device", _open)
    kernel = _failing_kernel if fail else naive_matmul
    bench = GemmBenchmark(BenchConfig(size=5, backend="python"), out=io.StringIO(), naive_kernel=kernel)

    if fail:
        with pytest.raises(DeviceError):
            bench.run()
    else:
        assert bench.run().verification.passed

    (dev,) = devices
    assert len(dev.refs) == 4
    assert dev.alive_after_close == []
