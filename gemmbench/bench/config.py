import attrs

from gemmbench.kernels.matmul_naive import BACKENDS, DEFAULT_TILE
from gemmbench.kernels.matrix import check_size
from gemmbench.kernels.verify import VERIFY_THRESHOLD


DEFAULT_SIZE = 1024
DEFAULT_SEED = 42
DEFAULT_WARMUP = 1

# Sizes used by --sweep when no explicit list is given. 1000 is deliberately
# not a multiple of the default tile.
DEFAULT_SWEEP = (128, 256, 512, 1000, 1024)


def _positive(instance, attribute, value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{attribute.name} must be a positive integer, got {value!r}")


def _non_negative(instance, attribute, value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{attribute.name} must be a non-negative integer, got {value!r}")


@attrs.define(frozen=True, slots=True)
class BenchConfig:
    size: int = attrs.field(default=DEFAULT_SIZE, converter=check_size)
    tile_rows: int = attrs.field(default=DEFAULT_TILE, validator=_positive)
    tile_cols: int = attrs.field(default=DEFAULT_TILE, validator=_positive)
    seed: int = DEFAULT_SEED
    backend: str = attrs.field(default="cpu", validator=attrs.validators.in_(BACKENDS))
    warmup: int = attrs.field(default=DEFAULT_WARMUP, validator=_non_negative)
    threshold: float = VERIFY_THRESHOLD

    @property
    def seeds(self):
        """Seeds for A and B; derived from one seed so the inputs differ."""
        return self.seed, self.seed + 1
