"""Configuration management utilities."""

from linscore.core.configs.schema import (
    REDUCTION_STRATEGIES,
    DeviceConfig,
    EvalConfig,
    KernelConfig,
    ReductionConfig,
    ScratchConfig,
    config_from_dict,
    config_to_dict,
)

__all__ = [
    "REDUCTION_STRATEGIES",
    "DeviceConfig",
    "EvalConfig",
    "KernelConfig",
    "ReductionConfig",
    "ScratchConfig",
    "config_from_dict",
    "config_to_dict",
]
