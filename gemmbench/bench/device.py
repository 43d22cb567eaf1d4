"""
Scoped compute resources for the benchmark.

A Device owns whatever buffers a backend computes on. Buffers are acquired
by name through `upload`/`allocate`, looked up with `device[name]`, and
released when the `with` block exits, on every exit path including a fatal
error part-way through a run. Callers should not keep their own references
to device buffers, otherwise closing the device cannot free them.

- HostDevice ("cpu", "python"): kernels run on the host buffers directly.
- CudaDevice ("cuda"): buffers are copied to Numba device arrays.
"""

import traceback

from gemmbench.errors import DeviceError


def _clear_failed_frames(exc):
    # Frames of a failed call still hold its buffer arguments
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        traceback.clear_frames(exc.__traceback__)
        exc = exc.__cause__ or exc.__context__


class HostDevice:
    name = "host"

    def __init__(self):
        self._buffers = {}
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        _clear_failed_frames(exc)
        self.close()
        return False

    def __getitem__(self, key):
        return self._buffers[key]

    def __contains__(self, key):
        return key in self._buffers

    def upload(self, key, matrix):
        self._buffers[key] = matrix.data

    def allocate(self, key, matrix):
        self._buffers[key] = matrix.data

    def download(self, key, matrix):
        buffer = self._buffers[key]
        if buffer is not matrix.data:
            matrix.data[:] = buffer
        return matrix

    def synchronize(self):
        # Host kernels return only after completing
        pass

    def close(self):
        self._buffers.clear()
        self.closed = True


class CudaDevice(HostDevice):
    name = "cuda"

    def __init__(self):
        super().__init__()
        from numba import cuda

        from gemmbench.kernels.matmul_naive_cuda import cuda_available

        if not cuda_available():
            raise DeviceError("CUDA device initialization", "no CUDA device available")
        self._cuda = cuda

    def upload(self, key, matrix):
        try:
            self._buffers[key] = self._cuda.to_device(matrix.data)
        except Exception as e:
            raise DeviceError("host to device copy", e) from e

    def allocate(self, key, matrix):
        try:
            self._buffers[key] = self._cuda.device_array(matrix.data.shape, dtype=matrix.data.dtype)
        except Exception as e:
            raise DeviceError("device allocation", e) from e

    def download(self, key, matrix):
        try:
            self._buffers[key].copy_to_host(matrix.data)
        except Exception as e:
            raise DeviceError("device to host copy", e) from e
        return matrix

    def synchronize(self):
        try:
            self._cuda.synchronize()
        except Exception as e:
            raise DeviceError("device synchronize", e) from e

    def close(self):
        super().close()
        # Free the dropped device arrays now rather than at the next GC pass
        self._cuda.current_context().deallocations.clear()


def open_device(backend):
    if backend == "cuda":
        return CudaDevice()
    return HostDevice()
