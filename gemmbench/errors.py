"""
Fatal error types for the GEMM benchmark.

A benchmark run is all-or-nothing: these are raised at the failing operation
and abort the remaining pipeline stages. Each carries the process exit code
the CLI reports. A FAIL verification is a result, not an error.
"""


class GemmBenchError(RuntimeError):
    """Base class for fatal benchmark errors."""

    exit_code = 1


class AllocationError(GemmBenchError):
    """Host buffer allocation failed."""

    exit_code = 911


class DeviceError(GemmBenchError):
    """A compute phase or data transfer failed."""

    exit_code = 1

    def __init__(self, operation, cause=None):
        self.operation = operation
        self.cause = cause
        message = f"{operation} failed"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
