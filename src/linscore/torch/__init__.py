"""PyTorch implementations of the linscore evaluation core."""

from linscore.torch.blas import GemmError, GemmStatus, Transpose, gemm, gemm_status_name
from linscore.torch.evaluation import (
    LinearClassifierEvaluator,
    evaluate_accuracy,
    evaluate_logloss,
)
from linscore.torch.kernels import (
    DeviceError,
    argmax_match_count,
    diagonal_trace_sum,
    elementwise_log,
    elementwise_unary,
    launch_config,
)
from linscore.torch.matrix import DeviceMatrix, PreconditionError, col_major_offset
from linscore.torch.scratch import ScratchArena

__all__ = [
    "DeviceError",
    "DeviceMatrix",
    "GemmError",
    "GemmStatus",
    "LinearClassifierEvaluator",
    "PreconditionError",
    "ScratchArena",
    "Transpose",
    "argmax_match_count",
    "col_major_offset",
    "diagonal_trace_sum",
    "elementwise_log",
    "elementwise_unary",
    "evaluate_accuracy",
    "evaluate_logloss",
    "gemm",
    "gemm_status_name",
    "launch_config",
]
