"""Shared utilities used by the evaluation core."""

from linscore.core.utils.device import (
    get_device,
    memory_allocated,
    resolve_dtype,
    synchronize,
)

__all__ = ["get_device", "memory_allocated", "resolve_dtype", "synchronize"]
