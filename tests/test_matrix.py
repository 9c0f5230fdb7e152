"""Tests for column-major device matrices."""

import numpy as np
import pytest
import torch

from linscore.torch import DeviceMatrix, PreconditionError, col_major_offset
from linscore.torch.matrix import assert_same_shape


class TestColMajorOffset:
    """Tests for the shared indexing utility."""

    def test_int_offsets(self) -> None:
        """Rows vary fastest within a column."""
        assert col_major_offset(0, 0, 3) == 0
        assert col_major_offset(2, 0, 3) == 2
        assert col_major_offset(0, 1, 3) == 3
        assert col_major_offset(1, 2, 3) == 7

    def test_tensor_offsets(self) -> None:
        """Offsets are computed element-wise on index tensors."""
        rows = torch.tensor([0, 1, 2])
        cols = torch.tensor([0, 1, 2])
        assert col_major_offset(rows, cols, 4).tolist() == [0, 5, 10]

    def test_mixed_int_and_tensor(self) -> None:
        """A fixed row against a tensor of columns gives one offset per column."""
        cols = torch.tensor([0, 1, 2])
        assert col_major_offset(0, cols, 3).tolist() == [0, 3, 6]
        assert col_major_offset(torch.tensor([1, 2]), 1, 3).tolist() == [4, 5]


class TestDeviceMatrix:
    """Tests for allocation, layout and lifecycle."""

    def test_from_numpy_stores_column_major(self, device: torch.device) -> None:
        """Consecutive storage elements walk down a column."""
        matrix = DeviceMatrix.from_numpy(np.array([[1, 2, 3], [4, 5, 6]]), device=device)

        assert matrix.shape == (2, 3)
        assert matrix.data.cpu().tolist() == [1, 4, 2, 5, 3, 6]

    def test_getitem_and_to_numpy(self, device: torch.device) -> None:
        """Element access and host copies use the logical shape."""
        array = np.arange(12, dtype=np.float32).reshape(3, 4)
        matrix = DeviceMatrix.from_numpy(array, device=device)

        assert matrix[0, 0] == 0.0
        assert matrix[2, 3] == 11.0
        assert matrix[1, 2] == 6.0
        np.testing.assert_array_equal(matrix.to_numpy(), array)

    def test_getitem_out_of_range(self, device: torch.device) -> None:
        """Out-of-range indices raise IndexError."""
        matrix = DeviceMatrix.zeros(2, 2, device=device)
        with pytest.raises(IndexError):
            _ = matrix[2, 0]

    def test_from_tensor_does_not_alias(self, device: torch.device) -> None:
        """A column-major source tensor is copied, not shared."""
        source = torch.ones(3, 2, device=device).t().contiguous().t()
        matrix = DeviceMatrix.from_tensor(source)
        source.fill_(5.0)

        assert matrix[0, 0] == 1.0

    def test_from_tensor_rejects_non_2d(self) -> None:
        """Only logical matrices are accepted."""
        with pytest.raises(ValueError, match="2-D"):
            DeviceMatrix.from_tensor(torch.ones(4))

    def test_view_writes_through(self, device: torch.device) -> None:
        """Writes to the strided view land in storage."""
        matrix = DeviceMatrix.zeros(2, 3, device=device)
        matrix.view()[1, 2] = 7.0

        assert matrix.data[col_major_offset(1, 2, 2)].item() == 7.0

    def test_free_invalidates(self, device: torch.device) -> None:
        """A freed matrix fails validation."""
        matrix = DeviceMatrix.zeros(2, 2, device=device)
        matrix.free()

        assert matrix.is_freed
        assert matrix.nbytes == 0
        with pytest.raises(PreconditionError, match="no storage"):
            matrix.assert_valid()

    def test_size_mismatch_is_invalid(self, device: torch.device) -> None:
        """Storage must hold exactly rows * cols elements."""
        matrix = DeviceMatrix(2, 3, torch.zeros(5, device=device))
        with pytest.raises(PreconditionError, match="expects 6 elements"):
            matrix.assert_valid()

    def test_negative_shape_rejected(self) -> None:
        """Allocation refuses negative dimensions."""
        with pytest.raises(PreconditionError):
            DeviceMatrix.allocate(-1, 2, device="cpu")

    def test_empty_matrix_is_valid(self, device: torch.device) -> None:
        """Zero-sized matrices are legal."""
        matrix = DeviceMatrix.allocate(0, 4, device=device)
        matrix.assert_valid()
        assert matrix.to_tensor().shape == (0, 4)

    def test_describe(self) -> None:
        """Debug description reports shape and state."""
        matrix = DeviceMatrix.zeros(2, 3, device="cpu")
        assert "2x3" in repr(matrix)
        matrix.free()
        assert "freed" in matrix.describe()


class TestAssertSameShape:
    """Tests for the shape precondition helper."""

    def test_mismatch_names_both_shapes(self) -> None:
        """The error message carries both shapes."""
        a = DeviceMatrix.zeros(2, 3, device="cpu")
        b = DeviceMatrix.zeros(3, 2, device="cpu")
        with pytest.raises(PreconditionError, match=r"\(2, 3\) vs \(3, 2\)"):
            assert_same_shape(a, b, "test")

    def test_precondition_error_is_assertion(self) -> None:
        """Precondition failures are assertion errors."""
        assert issubclass(PreconditionError, AssertionError)
