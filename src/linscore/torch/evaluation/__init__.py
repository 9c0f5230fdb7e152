"""PyTorch evaluation metrics."""

from linscore.torch.evaluation.evaluator import LinearClassifierEvaluator
from linscore.torch.evaluation.metrics import evaluate_accuracy, evaluate_logloss

__all__ = ["LinearClassifierEvaluator", "evaluate_accuracy", "evaluate_logloss"]
