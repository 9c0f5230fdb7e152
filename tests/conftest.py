"""Pytest configuration and shared fixtures."""

from collections.abc import Callable

import numpy as np
import pytest
import torch

from linscore.torch import DeviceMatrix


@pytest.fixture
def device() -> torch.device:
    """Get the device evaluation tests run on (CUDA when present)."""
    if torch.cuda.is_available():
        return torch.device("cuda")
    return torch.device("cpu")


@pytest.fixture
def to_device(device: torch.device) -> Callable[..., DeviceMatrix]:
    """Build a float32 DeviceMatrix from a logical (rows, cols) array-like."""

    def _make(values, dtype: np.dtype = np.float32) -> DeviceMatrix:
        return DeviceMatrix.from_numpy(np.asarray(values, dtype=dtype), device=device)

    return _make


def _one_hot(labels: list[int], num_classes: int) -> np.ndarray:
    y = np.zeros((num_classes, len(labels)), dtype=np.float32)
    y[labels, np.arange(len(labels))] = 1.0
    return y


@pytest.fixture
def one_hot() -> Callable[[list[int], int], np.ndarray]:
    """Label matrix of shape (num_classes, batch) with Y[label, col] = 1."""
    return _one_hot


@pytest.fixture
def sample_batch() -> dict[str, np.ndarray]:
    """Three features, three classes, four samples with W = I.

    The arg-max rows of W^T X = X are [0, 1, 2, 1].
    """
    return {
        "W": np.eye(3, dtype=np.float32),
        "X": np.array(
            [
                [0.90, 0.10, 0.20, 0.00],
                [0.05, 0.80, 0.30, 1.00],
                [0.05, 0.10, 0.50, 0.00],
            ],
            dtype=np.float32,
        ),
        "labels": [0, 1, 2, 1],
    }
