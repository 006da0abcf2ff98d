"""
PyTorch-backed tensor library used by the adapter benchmark.

Exposes adapter discovery, per-adapter contexts and explicit
create/release tensor handles on top of torch devices.
"""
from .errors import ContextError, ReleaseError, TensorLibraryError
from .library import TensorHandle, TorchTensorLibrary

__all__ = [
    "ContextError",
    "ReleaseError",
    "TensorHandle",
    "TensorLibraryError",
    "TorchTensorLibrary",
]
