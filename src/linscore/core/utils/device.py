"""Accelerator device selection and synchronization helpers."""

import torch

_DTYPES = {
    "float32": torch.float32,
    "float64": torch.float64,
    "float16": torch.float16,
    "bfloat16": torch.bfloat16,
}


def get_device(name: str = "auto") -> torch.device:
    """Get the device evaluation buffers should live on.

    Args:
        name: "auto" picks CUDA if available, then MPS, else CPU.
            Any other value is passed to ``torch.device`` unchanged.

    Returns:
        torch.device for device-resident matrices.
    """
    if name != "auto":
        return torch.device(name)

    if torch.cuda.is_available():
        return torch.device("cuda")

    if hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
        return torch.device("mps")

    return torch.device("cpu")


def resolve_dtype(name: str) -> torch.dtype:
    """Map a config dtype name to a torch dtype.

    Raises:
        ValueError: If the name is not a supported floating-point dtype.
    """
    try:
        return _DTYPES[name]
    except KeyError:
        msg = f"Unsupported dtype '{name}', expected one of {sorted(_DTYPES)}"
        raise ValueError(msg) from None


def synchronize(device: torch.device | None = None) -> None:
    """Block the calling thread until all queued work on the device is done.

    No-op on CPU, where every operation is already synchronous.
    """
    device = torch.device(device) if device is not None else get_device()

    if device.type == "cuda":
        torch.cuda.synchronize(device)
    elif device.type == "mps":
        torch.mps.synchronize()


def memory_allocated(device: torch.device | None = None) -> int:
    """Bytes currently held by tensors on the device (0 where not tracked)."""
    device = torch.device(device) if device is not None else get_device()

    if device.type == "cuda":
        return torch.cuda.memory_allocated(device)
    if device.type == "mps":
        return torch.mps.current_allocated_memory()
    return 0
