"""Strongly-typed configuration schemas for linscore evaluation.

These dataclasses provide validation, IDE support, and serve as the
single source of truth for all configuration options.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

REDUCTION_STRATEGIES = ("atomic", "tree", "auto")


@dataclass
class DeviceConfig:
    """Configuration for device placement of evaluation buffers."""

    name: str = "auto"  # "auto" | "cuda" | "cuda:N" | "mps" | "cpu"
    dtype: str = "float32"


@dataclass
class KernelConfig:
    """Configuration for custom kernel launches."""

    max_threads_per_block: int = 1024
    label_threshold: float = 0.5  # Y[i, col] >= threshold marks class i

    def __post_init__(self) -> None:
        """Validate launch limits."""
        if not 1 <= self.max_threads_per_block <= 1024:
            msg = f"max_threads_per_block must be in [1, 1024], got {self.max_threads_per_block}"
            raise ValueError(msg)


@dataclass
class ReductionConfig:
    """Configuration for the diagonal-trace reduction.

    "atomic" adds every diagonal entry into one scalar, "tree" sums per block
    first and combines the partials, "auto" switches to "tree" once the
    diagonal is longer than ``tree_threshold``.
    """

    strategy: str = "atomic"
    tree_threshold: int = 4096

    def __post_init__(self) -> None:
        """Validate strategy name."""
        if self.strategy not in REDUCTION_STRATEGIES:
            msg = f"strategy must be one of {REDUCTION_STRATEGIES}, got '{self.strategy}'"
            raise ValueError(msg)


@dataclass
class ScratchConfig:
    """Configuration for reusing intermediate buffers across calls."""

    enabled: bool = False


@dataclass
class EvalConfig:
    """Top-level configuration combining all sub-configs."""

    device: DeviceConfig = field(default_factory=DeviceConfig)
    kernel: KernelConfig = field(default_factory=KernelConfig)
    reduction: ReductionConfig = field(default_factory=ReductionConfig)
    scratch: ScratchConfig = field(default_factory=ScratchConfig)

    verbose: bool = False
    log_level: str = "INFO"


def config_from_dict(data: dict[str, Any]) -> EvalConfig:
    """Create EvalConfig from a dictionary (e.g., from OmegaConf).

    Args:
        data: Dictionary with configuration values.

    Returns:
        EvalConfig instance.
    """
    return EvalConfig(
        device=DeviceConfig(**data.get("device", {})),
        kernel=KernelConfig(**data.get("kernel", {})),
        reduction=ReductionConfig(**data.get("reduction", {})),
        scratch=ScratchConfig(**data.get("scratch", {})),
        verbose=data.get("verbose", False),
        log_level=data.get("log_level", "INFO"),
    )


def config_to_dict(config: EvalConfig) -> dict[str, Any]:
    """Convert EvalConfig to a dictionary for serialization."""
    return asdict(config)
