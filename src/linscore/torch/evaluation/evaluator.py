"""Config-driven front end over the accuracy and log-loss evaluators."""

import numpy as np
from loguru import logger
from torch import Tensor

from linscore.core.configs.schema import EvalConfig
from linscore.core.utils.device import get_device, resolve_dtype
from linscore.torch.evaluation.metrics import evaluate_accuracy, evaluate_logloss
from linscore.torch.matrix import DeviceMatrix
from linscore.torch.scratch import ScratchArena


class LinearClassifierEvaluator:
    """Scores a linear classifier's weights against labelled batches.

    Holds the device, dtype, kernel and reduction settings of an EvalConfig,
    plus a scratch arena when ``scratch.enabled`` is set so that repeated
    log-loss calls reuse their intermediates.

    Example:
        evaluator = LinearClassifierEvaluator(config)
        W = evaluator.to_device(weights)
        acc = evaluator.accuracy(W, evaluator.to_device(x), evaluator.to_device(y))
    """

    def __init__(self, config: EvalConfig | None = None) -> None:
        self.config = config or EvalConfig()
        self.device = get_device(self.config.device.name)
        self.dtype = resolve_dtype(self.config.device.dtype)
        self.arena = ScratchArena(self.device, self.dtype) if self.config.scratch.enabled else None

        logger.info(
            f"Evaluator on {self.device} ({self.config.device.dtype}, "
            f"reduction={self.config.reduction.strategy}, "
            f"scratch={'on' if self.arena is not None else 'off'})"
        )

    def to_device(self, array: np.ndarray | Tensor) -> DeviceMatrix:
        """Copy a logical ``(rows, cols)`` array into a device matrix."""
        if isinstance(array, Tensor):
            return DeviceMatrix.from_tensor(array, device=self.device, dtype=self.dtype)
        return DeviceMatrix.from_numpy(np.asarray(array), device=self.device, dtype=self.dtype)

    def accuracy(
        self,
        W: DeviceMatrix,
        X: DeviceMatrix,
        Y: DeviceMatrix,
        Z: DeviceMatrix | None = None,
        batch_size: int | None = None,
    ) -> float:
        """Accuracy of ``W`` on ``(X, Y)``.

        Without ``Z`` a zeroed score matrix is allocated for the call and
        freed afterwards; a caller-supplied ``Z`` is accumulated into.
        """
        owned = Z is None
        if owned:
            Z = DeviceMatrix.zeros(W.cols, X.cols, device=W.device, dtype=W.dtype)

        try:
            return evaluate_accuracy(
                W,
                X,
                Y,
                Z,
                self.config.verbose,
                batch_size=batch_size,
                threshold=self.config.kernel.label_threshold,
                max_threads=self.config.kernel.max_threads_per_block,
            )
        finally:
            if owned:
                Z.free()

    def logloss(self, P: DeviceMatrix, Y: DeviceMatrix) -> float:
        """Total (unnormalized) log-loss of probabilities ``P`` against ``Y``."""
        return evaluate_logloss(
            P,
            Y,
            self.config.verbose,
            arena=self.arena,
            reduction=self.config.reduction.strategy,
            tree_threshold=self.config.reduction.tree_threshold,
            max_threads=self.config.kernel.max_threads_per_block,
        )

    def mean_logloss(self, P: DeviceMatrix, Y: DeviceMatrix) -> float:
        """Log-loss averaged over the batch (0.0 for an empty batch)."""
        total = self.logloss(P, Y)
        if Y.cols == 0:
            return 0.0
        return total / Y.cols

    def release(self) -> None:
        """Drop scratch buffers held between calls."""
        if self.arena is not None:
            self.arena.clear()
