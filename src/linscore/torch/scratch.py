"""Reusable scratch buffers for evaluator intermediates.

A hot evaluation loop calling the log-loss evaluator on batches of varying
size would otherwise allocate and free two device matrices per call. The
arena keeps one flat buffer per named slot, grown to the largest request seen,
and hands out matrix views over it for the duration of a ``with`` block.
"""

from collections.abc import Iterator
from contextlib import contextmanager

import torch
from loguru import logger
from torch import Tensor

from linscore.core.utils.device import get_device
from linscore.torch.matrix import DeviceMatrix


def _normalize(device: torch.device | str) -> torch.device:
    """Give accelerator devices an explicit index so they compare equal to tensor devices."""
    device = torch.device(device)
    if device.type == "cuda" and device.index is None:
        return torch.device("cuda", torch.cuda.current_device())
    if device.type == "mps" and device.index is None:
        return torch.device("mps", 0)
    return device


class ScratchArena:
    """Named, grow-only scratch slots on one device.

    Not thread-safe: a slot may be held by one ``acquire`` block at a time.

    Example:
        arena = ScratchArena(device)
        with arena.acquire("logp", rows, cols) as log_p:
            ...
    """

    def __init__(self, device: torch.device | str | None = None, dtype: torch.dtype = torch.float32) -> None:
        self.device = _normalize(device if device is not None else get_device())
        self.dtype = dtype
        self._buffers: dict[str, Tensor] = {}
        self._in_use: set[str] = set()

    @contextmanager
    def acquire(
        self,
        name: str,
        rows: int,
        cols: int,
        device: torch.device | None = None,
        dtype: torch.dtype | None = None,
    ) -> Iterator[DeviceMatrix]:
        """Borrow slot ``name`` as a ``rows x cols`` matrix.

        The slot is reallocated when it is too small or lives on a different
        device/dtype than requested. Its content is uninitialized.

        Raises:
            RuntimeError: If the slot is already borrowed.
        """
        if name in self._in_use:
            msg = f"Scratch slot '{name}' is already in use"
            raise RuntimeError(msg)

        device = _normalize(device) if device is not None else self.device
        dtype = dtype or self.dtype
        numel = rows * cols

        buffer = self._buffers.get(name)
        if buffer is None or buffer.numel() < numel or buffer.dtype != dtype or buffer.device != device:
            logger.debug(f"Allocating scratch slot '{name}' with {numel} elements on {device}")
            self._buffers.pop(name, None)
            buffer = torch.empty(numel, device=device, dtype=dtype)
            self._buffers[name] = buffer

        matrix = DeviceMatrix(rows, cols, buffer[:numel])
        self._in_use.add(name)
        try:
            yield matrix
        finally:
            matrix.free()
            self._in_use.discard(name)

    def capacity(self, name: str) -> int:
        """Elements currently reserved by slot ``name`` (0 if never used)."""
        buffer = self._buffers.get(name)
        return 0 if buffer is None else buffer.numel()

    @property
    def nbytes(self) -> int:
        return sum(b.numel() * b.element_size() for b in self._buffers.values())

    def clear(self) -> None:
        """Drop every backing buffer.

        Raises:
            RuntimeError: If a slot is still borrowed.
        """
        if self._in_use:
            msg = f"Cannot clear scratch arena while slots are in use: {sorted(self._in_use)}"
            raise RuntimeError(msg)
        self._buffers.clear()
