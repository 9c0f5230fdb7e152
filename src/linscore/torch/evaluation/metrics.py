"""Accuracy and log-loss of a linear classifier, computed on the device.

Both metrics take column-major :class:`DeviceMatrix` operands: weights ``W``
(features x classes), features ``X`` (features x batch), labels ``Y``
(classes x batch) and probabilities ``P`` (classes x batch).
"""

from collections.abc import Iterator
from contextlib import contextmanager

import torch
from loguru import logger

from linscore.torch.blas import Transpose, check_gemm, gemm
from linscore.torch.kernels import (
    MAX_THREADS_PER_BLOCK,
    argmax_match_count,
    diagonal_trace_sum,
    elementwise_log,
)
from linscore.torch.matrix import DeviceMatrix, PreconditionError, assert_same_shape
from linscore.torch.scratch import ScratchArena


@contextmanager
def _intermediate(
    arena: ScratchArena | None,
    name: str,
    rows: int,
    cols: int,
    device: torch.device,
    dtype: torch.dtype,
) -> Iterator[DeviceMatrix]:
    """A matrix owned by one evaluator call, released when the block exits."""
    if arena is not None:
        with arena.acquire(name, rows, cols, device=device, dtype=dtype) as matrix:
            yield matrix
        return

    matrix = DeviceMatrix.allocate(rows, cols, device=device, dtype=dtype)
    try:
        yield matrix
    finally:
        matrix.free()


def evaluate_accuracy(
    W: DeviceMatrix,
    X: DeviceMatrix,
    Y: DeviceMatrix,
    Z: DeviceMatrix,
    verbose: bool = False,
    *,
    batch_size: int | None = None,
    threshold: float = 0.5,
    max_threads: int = MAX_THREADS_PER_BLOCK,
) -> float:
    """Compute classification accuracy of ``W`` on a labelled batch.

    Scores are accumulated into ``Z`` as ``Z := W^T X + Z``: pass a zeroed
    ``Z`` unless the pre-seed is intentional. The predicted class of a sample
    is the arg-max row of its column in ``Z`` (lowest row on ties); it counts
    as correct when ``Y[predicted, col] >= threshold``.

    Args:
        W: Weights, features x classes.
        X: Features, features x batch.
        Y: Labels, classes x batch.
        Z: Score matrix, classes x batch. Mutated in place.
        verbose: Log shapes and the raw count at INFO instead of DEBUG.
        batch_size: Only reported in the log message; the result is always
            normalized by ``Z.cols``.
        threshold: Label value marking the true class.
        max_threads: Threads per block for the arg-max kernel.

    Returns:
        Fraction of correctly classified columns, in [0, 1]. 0.0 for an
        empty batch.

    Raises:
        PreconditionError: If a matrix is invalid, Y and Z differ in shape,
            or W, X and Z do not form a ``W^T X`` product.
        GemmError: If the score projection fails.
        DeviceError: If the arg-max kernel fails on the device.
    """
    for matrix in (W, X, Y, Z):
        matrix.assert_valid()
    assert_same_shape(Y, Z, "evaluate_accuracy (labels vs scores)")
    if W.rows != X.rows or W.cols != Z.rows or X.cols != Z.cols:
        msg = (
            f"evaluate_accuracy (weights vs features vs scores): W^T X needs "
            f"W.rows == X.rows and a W.cols x X.cols result, "
            f"got W {W.shape}, X {X.shape}, Z {Z.shape}"
        )
        raise PreconditionError(msg)

    log = logger.info if verbose else logger.debug
    log(f"accuracy: W {W.shape}, X {X.shape}, Y {Y.shape}, Z {Z.shape}")

    status = gemm(
        Transpose.T, Transpose.N,
        W.cols, X.cols, W.rows,
        1.0, W, max(1, W.rows),
        X, max(1, X.rows),
        1.0, Z, max(1, Z.rows),
    )
    check_gemm(status, "evaluate_accuracy: Z := W^T X + Z")

    counter = torch.zeros(1, dtype=torch.int32, device=Z.device)
    argmax_match_count(Z, Y, counter, threshold=threshold, max_threads=max_threads, sync=True)
    correct = int(counter.item())

    log(f"accuracy: {correct} / {Z.cols} correct (batch_size={batch_size})")

    if Z.cols == 0:
        return 0.0
    return correct / Z.cols


def evaluate_logloss(
    P: DeviceMatrix,
    Y: DeviceMatrix,
    verbose: bool = False,
    *,
    arena: ScratchArena | None = None,
    reduction: str = "atomic",
    tree_threshold: int = 4096,
    max_threads: int = MAX_THREADS_PER_BLOCK,
) -> float:
    """Compute the total cross-entropy ``-sum(Y * ln(P))`` over a batch.

    The total is not averaged; divide by the batch size if needed. ``P`` is
    not clamped, so a zero probability on a labelled class yields ``inf`` and
    a negative one yields NaN.

    Internally ``Z := -Y^T ln(P)`` is a batch x batch product whose trace is
    the loss. ``ln(P)`` and ``Z`` are freed (or returned to ``arena``) before
    returning, on success and on error. The accumulator is zeroed before the
    reduction.

    Args:
        P: Predicted probabilities, classes x batch.
        Y: Labels, classes x batch.
        verbose: Log shapes and the result at INFO instead of DEBUG.
        arena: Optional scratch arena supplying the two intermediates.
        reduction: "atomic", "tree" or "auto" trace reduction.
        tree_threshold: Diagonal length above which "auto" picks "tree".
        max_threads: Threads per block for the kernels.

    Returns:
        The unnormalized log-loss.

    Raises:
        PreconditionError: If a matrix is invalid or Y and P differ in shape.
        GemmError: If the label/log-probability product fails.
        DeviceError: If a kernel fails on the device.
    """
    P.assert_valid()
    Y.assert_valid()
    assert_same_shape(Y, P, "evaluate_logloss (labels vs probabilities)")

    log = logger.info if verbose else logger.debug
    log(f"logloss: P {P.shape}, Y {Y.shape}")

    batch = Y.cols
    with (
        _intermediate(arena, "logp", P.rows, P.cols, P.device, P.dtype) as log_p,
        _intermediate(arena, "product", batch, batch, P.device, P.dtype) as Z,
    ):
        elementwise_log(P, log_p, max_threads=max_threads)

        status = gemm(
            Transpose.T, Transpose.N,
            Y.cols, log_p.cols, Y.rows,
            -1.0, Y, max(1, Y.rows),
            log_p, max(1, log_p.rows),
            0.0, Z, max(1, Z.rows),
        )
        check_gemm(status, "evaluate_logloss: Z := -Y^T ln(P)")

        acc = torch.zeros(1, dtype=Z.dtype, device=Z.device)
        diagonal_trace_sum(
            Z,
            acc,
            strategy=reduction,
            tree_threshold=tree_threshold,
            max_threads=max_threads,
            sync=True,
        )
        total = acc.item()

    log(f"logloss: total {total:.6f} over {batch} samples")
    return total
