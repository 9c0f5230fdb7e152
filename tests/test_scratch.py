"""Tests for the scratch buffer arena."""

import pytest
import torch

from linscore.torch import ScratchArena


class TestScratchArena:
    """Tests for slot reuse and lifecycle."""

    def test_reuses_backing_buffer(self, device: torch.device) -> None:
        """A smaller request reuses the existing slot storage."""
        arena = ScratchArena(device)

        with arena.acquire("logp", 4, 4) as first:
            first_ptr = first.data.data_ptr()
        with arena.acquire("logp", 2, 3) as second:
            assert second.shape == (2, 3)
            assert second.data.numel() == 6
            assert second.data.data_ptr() == first_ptr

        assert arena.capacity("logp") == 16

    def test_grows_to_largest_request(self, device: torch.device) -> None:
        """A larger request reallocates the slot."""
        arena = ScratchArena(device)
        with arena.acquire("product", 2, 2):
            pass
        with arena.acquire("product", 5, 5):
            pass
        assert arena.capacity("product") == 25
        assert arena.nbytes == 25 * 4

    def test_view_freed_on_exit(self, device: torch.device) -> None:
        """Borrowed matrices are invalid after the block, even on error."""
        arena = ScratchArena(device)
        with pytest.raises(KeyError):
            with arena.acquire("logp", 2, 2) as matrix:
                raise KeyError("boom")

        assert matrix.is_freed
        with arena.acquire("logp", 2, 2):
            pass

    def test_slot_in_use(self, device: torch.device) -> None:
        """A slot cannot be borrowed twice at once."""
        arena = ScratchArena(device)
        with arena.acquire("logp", 2, 2):
            with pytest.raises(RuntimeError, match="already in use"):
                with arena.acquire("logp", 2, 2):
                    pass

    def test_dtype_change_reallocates(self, device: torch.device) -> None:
        """Requesting another dtype replaces the slot storage."""
        arena = ScratchArena(device)
        with arena.acquire("logp", 2, 2):
            pass
        with arena.acquire("logp", 2, 2, dtype=torch.float64) as matrix:
            assert matrix.dtype == torch.float64

    def test_clear(self, device: torch.device) -> None:
        """Clearing drops every buffer but not while one is borrowed."""
        arena = ScratchArena(device)
        with arena.acquire("logp", 3, 3):
            with pytest.raises(RuntimeError):
                arena.clear()
        arena.clear()
        assert arena.capacity("logp") == 0
        assert arena.nbytes == 0
