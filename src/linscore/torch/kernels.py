"""Data-parallel kernels shared by the evaluators.

Each kernel keeps the shape of a one-thread-per-output-element launch: a
thread index range covering ``blocks * threads`` ids, a mask that turns
out-of-range threads into no-ops, and ``index_add_`` wherever threads
accumulate into a shared scalar (an atomic add on CUDA). Indexing goes
through :func:`col_major_offset` so the kernels agree with the GEMM on
layout.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, NamedTuple

import torch
from loguru import logger
from torch import Tensor

from linscore.core.configs.schema import REDUCTION_STRATEGIES
from linscore.core.utils.device import synchronize
from linscore.torch.matrix import DeviceMatrix, assert_same_shape, col_major_offset

MAX_THREADS_PER_BLOCK = 1024


class DeviceError(RuntimeError):
    """Raised when the accelerator runtime fails while running a kernel."""

    def __init__(self, kernel: str, dims: dict[str, Any], cause: BaseException) -> None:
        self.kernel = kernel
        self.dims = dims
        detail = ", ".join(f"{key}={value}" for key, value in dims.items())
        super().__init__(f"{kernel} ({detail}) failed: {cause}")


class LaunchConfig(NamedTuple):
    """Grid shape of a kernel launch."""

    blocks: int
    threads: int

    @property
    def total(self) -> int:
        return self.blocks * self.threads


def launch_config(n: int, max_threads: int = MAX_THREADS_PER_BLOCK) -> LaunchConfig:
    """Smallest grid of at most ``max_threads`` threads per block covering ``n`` threads."""
    if n < 0:
        msg = f"Cannot launch a negative number of threads ({n})"
        raise ValueError(msg)
    threads = max(1, min(n, max_threads))
    blocks = max(1, -(-n // threads))
    return LaunchConfig(blocks, threads)


@contextmanager
def launch(
    kernel: str,
    config: LaunchConfig,
    device: torch.device,
    sync: bool = False,
    **dims: Any,
) -> Iterator[None]:
    """Guard a kernel body, attributing runtime failures to the kernel.

    With ``sync`` the device is synchronized before leaving the guard, so
    asynchronous failures surface here rather than at a later copy.

    Raises:
        DeviceError: If the body or the synchronization raises a runtime error.
    """
    logger.debug(f"launch {kernel} <<<{config.blocks}, {config.threads}>>> on {device} {dims}")
    try:
        yield
        if sync:
            synchronize(device)
    except RuntimeError as e:
        logger.error(f"{kernel} failed on {device} with {dims}: {e}")
        raise DeviceError(kernel, dims, e) from e


def _thread_ids(config: LaunchConfig, device: torch.device) -> Tensor:
    return torch.arange(config.total, device=device)


def elementwise_unary(
    fn: Callable[[Tensor], Tensor],
    src: DeviceMatrix,
    dst: DeviceMatrix,
    max_threads: int = MAX_THREADS_PER_BLOCK,
) -> None:
    """Write ``dst[i, j] = fn(src[i, j])`` with one thread per element.

    ``src`` and ``dst`` may be the same matrix.
    """
    src.assert_valid()
    dst.assert_valid()
    assert_same_shape(src, dst, "elementwise_unary")

    rows, cols = src.shape
    config = launch_config(rows * cols, max_threads)
    name = f"elementwise_{getattr(fn, '__name__', 'unary')}"

    with launch(name, config, src.device, rows=rows, cols=cols):
        if rows == 0:
            return
        linear = _thread_ids(config, src.device)
        i = linear % rows
        j = linear // rows
        active = j < cols
        offsets = col_major_offset(i[active], j[active], rows)
        dst.data[offsets] = fn(src.data[offsets])


def elementwise_log(
    src: DeviceMatrix,
    dst: DeviceMatrix,
    max_threads: int = MAX_THREADS_PER_BLOCK,
) -> None:
    """Natural log of every element. ``ln(0)`` is ``-inf`` and ``ln(x < 0)`` is NaN."""
    elementwise_unary(torch.log, src, dst, max_threads)


def argmax_match_count(
    Z: DeviceMatrix,
    Y: DeviceMatrix,
    counter: Tensor,
    threshold: float = 0.5,
    max_threads: int = MAX_THREADS_PER_BLOCK,
    sync: bool = False,
) -> None:
    """Count columns whose arg-max row in ``Z`` is labelled in ``Y``.

    One thread owns one column and scans its rows in order with a strict
    ``>``, so the earliest maximal row wins ties. A column is counted when
    ``Y[argmax, col] >= threshold``; counts are added to ``counter[0]``.
    Work per thread is O(rows), which suits small class counts only.
    """
    Z.assert_valid()
    Y.assert_valid()
    assert_same_shape(Y, Z, "argmax_match_count")

    config = launch_config(Z.cols, max_threads)

    with launch("argmax_match_count", config, Z.device, sync=sync, rows=Z.rows, cols=Z.cols):
        col = _thread_ids(config, Z.device)
        col = col[col < Z.cols]
        if Z.rows == 0 or col.numel() == 0:
            return

        best_val = Z.data[col_major_offset(0, col, Z.rows)]
        best_row = torch.zeros_like(col)
        for row in range(1, Z.rows):
            val = Z.data[col_major_offset(row, col, Z.rows)]
            better = val > best_val
            best_val = torch.where(better, val, best_val)
            best_row = best_row.masked_fill(better, row)

        hit = Y.data[col_major_offset(best_row, col, Y.rows)] >= threshold
        counter.index_add_(0, torch.zeros_like(col), hit.to(counter.dtype))


def resolve_strategy(strategy: str, n: int, tree_threshold: int) -> str:
    """Pick the concrete reduction for a diagonal of length ``n``."""
    if strategy not in REDUCTION_STRATEGIES:
        msg = f"Unknown reduction strategy '{strategy}', expected one of {REDUCTION_STRATEGIES}"
        raise ValueError(msg)
    if strategy == "auto":
        return "tree" if n > tree_threshold else "atomic"
    return strategy


def diagonal_trace_sum(
    Z: DeviceMatrix,
    acc: Tensor,
    strategy: str = "atomic",
    tree_threshold: int = 4096,
    max_threads: int = MAX_THREADS_PER_BLOCK,
    sync: bool = False,
) -> None:
    """Add ``sum_k Z[k, k]`` for ``k < min(rows, cols)`` into ``acc[0]``.

    ``acc`` must hold a known starting value; this kernel does not zero it.
    "atomic" adds every entry straight into ``acc``; "tree" sums each block
    into a partial and combines the partials in a second step. Floating-point
    rounding depends on addition order, so results agree within tolerance
    only. With ``sync`` a device failure is raised before returning.
    """
    Z.assert_valid()
    n = min(Z.rows, Z.cols)
    strategy = resolve_strategy(strategy, n, tree_threshold)
    config = launch_config(n, max_threads)

    with launch(
        f"diagonal_trace_sum[{strategy}]", config, Z.device, sync=sync, rows=Z.rows, cols=Z.cols
    ):
        k = _thread_ids(config, Z.device)
        active = k < n

        if strategy == "atomic":
            k = k[active]
            acc.index_add_(0, torch.zeros_like(k), Z.data[col_major_offset(k, k, Z.rows)].to(acc.dtype))
            return

        values = torch.zeros(config.total, dtype=acc.dtype, device=Z.device)
        diag = k[active]
        values[active] = Z.data[col_major_offset(diag, diag, Z.rows)].to(acc.dtype)
        partials = values.view(config.blocks, config.threads).sum(dim=1)
        acc.add_(partials.sum())
