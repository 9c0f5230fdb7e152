"""Column-major GEMM with BLAS argument conventions.

``gemm`` mirrors the vendor BLAS entry point: it never raises for bad
arguments or backend failures, it returns a :class:`GemmStatus`. Callers that
cannot continue on an unwritten result use :func:`check_gemm` to turn a
failure into :class:`GemmError`.
"""

from enum import Enum, IntEnum

import torch
from loguru import logger
from torch import Tensor

from linscore.torch.matrix import DeviceMatrix, col_major_offset


class Transpose(str, Enum):
    """Operation applied to a GEMM operand."""

    N = "N"
    T = "T"


class GemmStatus(IntEnum):
    """Status codes returned by :func:`gemm` (same values as cuBLAS)."""

    SUCCESS = 0
    NOT_INITIALIZED = 1
    ALLOC_FAILED = 3
    INVALID_VALUE = 7
    ARCH_MISMATCH = 8
    MAPPING_ERROR = 11
    EXECUTION_FAILED = 13
    INTERNAL_ERROR = 14
    NOT_SUPPORTED = 15
    LICENSE_ERROR = 16


def gemm_status_name(status: int) -> str:
    """Human-readable name of a GEMM status code."""
    try:
        return f"GEMM_STATUS_{GemmStatus(status).name}"
    except ValueError:
        return f"GEMM_STATUS_UNKNOWN({status})"


class GemmError(RuntimeError):
    """Raised when a matrix multiply the caller depends on did not succeed."""

    def __init__(self, status: int, context: str = "gemm") -> None:
        self.status = status
        self.status_name = gemm_status_name(status)
        super().__init__(f"{context} failed with {self.status_name}")


def check_gemm(status: GemmStatus, context: str) -> None:
    """Log and raise GemmError for any non-success status."""
    if status != GemmStatus.SUCCESS:
        logger.error(f"{context}: matrix multiply returned {gemm_status_name(status)}")
        raise GemmError(status, context)


def _storage(operand: Tensor | DeviceMatrix) -> Tensor | None:
    if isinstance(operand, DeviceMatrix):
        return operand.data
    return operand


def _extent(rows: int, cols: int, ld: int) -> int:
    """Number of buffer elements a (rows, cols, ld) view touches."""
    if rows == 0 or cols == 0:
        return 0
    return col_major_offset(rows - 1, cols - 1, ld) + 1


def _strided(buffer: Tensor, rows: int, cols: int, ld: int) -> Tensor:
    return buffer.as_strided((rows, cols), (col_major_offset(1, 0, ld), col_major_offset(0, 1, ld)))


def gemm(
    transa: Transpose | str,
    transb: Transpose | str,
    m: int,
    n: int,
    k: int,
    alpha: float,
    A: Tensor | DeviceMatrix,
    lda: int,
    B: Tensor | DeviceMatrix,
    ldb: int,
    beta: float,
    C: Tensor | DeviceMatrix,
    ldc: int,
) -> GemmStatus:
    """Compute ``C := alpha * op(A) @ op(B) + beta * C`` on column-major buffers.

    ``op(A)`` is ``m x k``, ``op(B)`` is ``k x n`` and ``C`` is ``m x n``. A
    stored operand has ``rows`` equal to the first dimension of its stored
    (untransposed) form, and its leading dimension must be at least
    ``max(1, rows)``. With ``beta == 0`` the prior content of ``C`` is ignored,
    NaN included.

    Args:
        transa: Operation applied to A.
        transb: Operation applied to B.
        m: Rows of op(A) and C.
        n: Columns of op(B) and C.
        k: Columns of op(A), rows of op(B).
        alpha: Scalar applied to the product.
        A: Flat buffer (or DeviceMatrix) holding A.
        lda: Leading dimension of A.
        B: Flat buffer (or DeviceMatrix) holding B.
        ldb: Leading dimension of B.
        beta: Scalar applied to C before accumulation.
        C: Flat buffer (or DeviceMatrix) written in place.
        ldc: Leading dimension of C.

    Returns:
        GemmStatus.SUCCESS, or the status describing why C was not written.
    """
    try:
        transa = Transpose(transa)
        transb = Transpose(transb)
    except ValueError:
        return GemmStatus.INVALID_VALUE

    if m < 0 or n < 0 or k < 0:
        return GemmStatus.INVALID_VALUE

    a_rows, a_cols = (m, k) if transa is Transpose.N else (k, m)
    b_rows, b_cols = (k, n) if transb is Transpose.N else (n, k)
    if lda < max(1, a_rows) or ldb < max(1, b_rows) or ldc < max(1, m):
        return GemmStatus.INVALID_VALUE

    a, b, c = _storage(A), _storage(B), _storage(C)
    if a is None or b is None or c is None:
        return GemmStatus.INVALID_VALUE
    if not (a.device == b.device == c.device):
        return GemmStatus.MAPPING_ERROR
    if not (a.dtype == b.dtype == c.dtype):
        return GemmStatus.NOT_SUPPORTED

    if m == 0 or n == 0:
        return GemmStatus.SUCCESS

    if (
        _extent(a_rows, a_cols, lda) > a.numel()
        or _extent(b_rows, b_cols, ldb) > b.numel()
        or _extent(m, n, ldc) > c.numel()
    ):
        return GemmStatus.INVALID_VALUE

    try:
        op_a = _strided(a, a_rows, a_cols, lda)
        op_b = _strided(b, b_rows, b_cols, ldb)
        if transa is Transpose.T:
            op_a = op_a.t()
        if transb is Transpose.T:
            op_b = op_b.t()

        out = _strided(c, m, n, ldc)
        out.copy_(torch.addmm(out, op_a, op_b, beta=beta, alpha=alpha))
    except torch.cuda.OutOfMemoryError as e:
        logger.debug(f"gemm ({m}x{n}x{k}) ran out of device memory: {e}")
        return GemmStatus.ALLOC_FAILED
    except RuntimeError as e:
        logger.debug(f"gemm ({m}x{n}x{k}) failed: {e}")
        return GemmStatus.EXECUTION_FAILED

    return GemmStatus.SUCCESS
