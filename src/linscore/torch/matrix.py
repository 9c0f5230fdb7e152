"""Column-major device matrices.

Every matrix handled by the evaluators stores element (row i, column j) of an
R-row matrix at linear offset ``i + j * R``. The kernels and the GEMM call
sites all go through :func:`col_major_offset`, so the layout is written down
exactly once.
"""

from dataclasses import dataclass

import numpy as np
import torch
from torch import Tensor

from linscore.core.utils.device import get_device


class PreconditionError(AssertionError):
    """Raised when a caller violates a shape or storage precondition.

    These are programmer errors; the library never catches them.
    """


def col_major_offset(row: int | Tensor, col: int | Tensor, ld: int) -> int | Tensor:
    """Linear offset of (row, col) in a column-major buffer with leading dimension ``ld``.

    Works element-wise on integer tensors as well as on plain ints.
    """
    return row + col * ld


@dataclass(repr=False, eq=False)
class DeviceMatrix:
    """A dense, column-major matrix living on an accelerator device.

    Attributes:
        rows: Number of rows.
        cols: Number of columns.
        data: Flat tensor of ``rows * cols`` elements, or None once freed.
    """

    rows: int
    cols: int
    data: Tensor | None

    @classmethod
    def allocate(
        cls,
        rows: int,
        cols: int,
        device: torch.device | str | None = None,
        dtype: torch.dtype = torch.float32,
    ) -> "DeviceMatrix":
        """Allocate uninitialized storage for a ``rows x cols`` matrix."""
        if rows < 0 or cols < 0:
            msg = f"Cannot allocate a matrix with negative shape ({rows}, {cols})"
            raise PreconditionError(msg)
        device = device if device is not None else get_device()
        return cls(rows, cols, torch.empty(rows * cols, device=device, dtype=dtype))

    @classmethod
    def zeros(
        cls,
        rows: int,
        cols: int,
        device: torch.device | str | None = None,
        dtype: torch.dtype = torch.float32,
    ) -> "DeviceMatrix":
        """Allocate zero-filled storage for a ``rows x cols`` matrix."""
        matrix = cls.allocate(rows, cols, device=device, dtype=dtype)
        matrix.data.zero_()
        return matrix

    @classmethod
    def from_tensor(
        cls,
        tensor: Tensor,
        device: torch.device | str | None = None,
        dtype: torch.dtype = torch.float32,
    ) -> "DeviceMatrix":
        """Copy a logical ``(rows, cols)`` tensor into fresh column-major storage.

        The result never aliases ``tensor``.
        """
        if tensor.dim() != 2:
            msg = f"Expected a 2-D tensor, got shape {tuple(tensor.shape)}"
            raise ValueError(msg)

        rows, cols = tensor.shape
        device = device if device is not None else tensor.device
        matrix = cls.allocate(rows, cols, device=device, dtype=dtype)
        matrix.view().copy_(tensor.detach())
        return matrix

    @classmethod
    def from_numpy(
        cls,
        array: np.ndarray,
        device: torch.device | str | None = None,
        dtype: torch.dtype = torch.float32,
    ) -> "DeviceMatrix":
        """Copy a logical ``(rows, cols)`` host array to the device."""
        tensor = torch.from_numpy(np.ascontiguousarray(array))
        device = device if device is not None else get_device()
        return cls.from_tensor(tensor, device=device, dtype=dtype)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def device(self) -> torch.device:
        self.assert_valid()
        return self.data.device

    @property
    def dtype(self) -> torch.dtype:
        self.assert_valid()
        return self.data.dtype

    @property
    def nbytes(self) -> int:
        if self.data is None:
            return 0
        return self.data.numel() * self.data.element_size()

    @property
    def is_freed(self) -> bool:
        return self.data is None

    def view(self, ld: int | None = None) -> Tensor:
        """Strided ``(rows, cols)`` view of the storage with leading dimension ``ld``.

        Writes through the view land in the matrix storage.
        """
        self.assert_valid()
        ld = self.rows if ld is None else ld
        return self.data.as_strided((self.rows, self.cols), (1, ld))

    def to_tensor(self) -> Tensor:
        """Logical ``(rows, cols)`` view of the matrix."""
        return self.view()

    def to_numpy(self) -> np.ndarray:
        """Copy the matrix back to host memory in logical ``(rows, cols)`` shape."""
        return self.to_tensor().detach().cpu().numpy().copy()

    def free(self) -> None:
        """Release the storage. The matrix is invalid afterwards."""
        self.data = None

    def assert_valid(self) -> None:
        """Check non-null storage, non-negative dimensions and matching element count.

        Raises:
            PreconditionError: If any check fails.
        """
        if self.data is None:
            msg = f"Matrix ({self.rows}, {self.cols}) has no storage (freed or never allocated)"
            raise PreconditionError(msg)
        if self.rows < 0 or self.cols < 0:
            msg = f"Matrix has negative shape ({self.rows}, {self.cols})"
            raise PreconditionError(msg)
        if self.data.dim() != 1 or self.data.numel() != self.rows * self.cols:
            msg = (
                f"Matrix ({self.rows}, {self.cols}) expects {self.rows * self.cols} "
                f"elements, storage has shape {tuple(self.data.shape)}"
            )
            raise PreconditionError(msg)

    def describe(self) -> str:
        """One-line description for debug output."""
        if self.data is None:
            return f"DeviceMatrix({self.rows}x{self.cols}, freed)"
        return f"DeviceMatrix({self.rows}x{self.cols}, device={self.data.device}, dtype={self.data.dtype})"

    def __repr__(self) -> str:
        return self.describe()

    def __getitem__(self, index: tuple[int, int]) -> float:
        row, col = index
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            msg = f"Index ({row}, {col}) out of range for shape ({self.rows}, {self.cols})"
            raise IndexError(msg)
        self.assert_valid()
        return self.data[col_major_offset(row, col, self.rows)].item()


def assert_same_shape(a: DeviceMatrix, b: DeviceMatrix, what: str) -> None:
    """Raise PreconditionError unless ``a`` and ``b`` agree on rows and cols."""
    if a.rows != b.rows or a.cols != b.cols:
        msg = f"{what}: shape mismatch {a.shape} vs {b.shape}"
        raise PreconditionError(msg)
