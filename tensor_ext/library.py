import itertools
from typing import Dict, List, Optional, Sequence, Tuple, Union

import torch

from .errors import ContextError, ReleaseError


DeviceLike = Union[str, torch.device]


class TensorHandle:
    """Opaque reference to a device buffer owned by one context"""

    __slots__ = ('handle_id', 'context_key', 'shape')

    def __init__(self, handle_id: int, context_key: str, shape: Tuple[int, ...]):
        self.handle_id = handle_id
        self.context_key = context_key
        self.shape = shape

    def __repr__(self):
        return f"TensorHandle(id={self.handle_id}, context={self.context_key!r}, shape={self.shape})"


def _backend_for_cuda() -> str:
    return 'rocm' if getattr(torch.version, 'hip', None) else 'cuda'


def discover_devices() -> List[Tuple[torch.device, str, str]]:
    """Enumerate GPU-class torch devices as (device, name, backend)"""
    found = []

    if torch.cuda.is_available():
        backend = _backend_for_cuda()
        for i in range(torch.cuda.device_count()):
            try:
                name = torch.cuda.get_device_name(i)
            except Exception:
                name = f"CUDA device {i}"
            found.append((torch.device('cuda', i), name, backend))

    xpu = getattr(torch, 'xpu', None)
    if xpu is not None and xpu.is_available():
        for i in range(xpu.device_count()):
            try:
                name = xpu.get_device_name(i)
            except Exception:
                name = f"XPU device {i}"
            found.append((torch.device('xpu', i), name, 'xpu'))

    mps = getattr(torch.backends, 'mps', None)
    if mps is not None and mps.is_available():
        found.append((torch.device('mps'), 'Apple MPS', 'mps'))

    return found


class TorchTensorLibrary:
    """Adapter, context and tensor-handle API over torch devices.

    Every tensor lives in ``_live`` until ``release`` is called with its
    handle; the library never frees a buffer on its own.
    """

    def __init__(self, devices: Optional[Sequence[DeviceLike]] = None,
                 dtype: torch.dtype = torch.float32):
        if devices is None:
            self._adapters = discover_devices()
        else:
            self._adapters = []
            for d in devices:
                dev = torch.device(d)
                self._adapters.append((dev, str(dev), dev.type))
        self.dtype = dtype
        self._contexts: Dict[str, torch.device] = {}
        self._live: Dict[int, torch.Tensor] = {}
        self._owners: Dict[int, str] = {}
        self._ids = itertools.count(1)

    # Adapters and contexts

    def list_adapters(self) -> List[Dict[str, str]]:
        return [{'name': name, 'backend': backend} for _, name, backend in self._adapters]

    def init_context(self, adapter_index: int, context_key: str) -> bool:
        if not 0 <= adapter_index < len(self._adapters):
            return False
        if context_key in self._contexts:
            return False
        device = self._adapters[adapter_index][0]
        try:
            probe = torch.empty(1, device=device, dtype=self.dtype)
            del probe
            self._sync_device(device)
        except Exception:
            return False
        self._contexts[context_key] = device
        return True

    def close_context(self, context_key: str) -> int:
        """Unbind a context; returns how many of its handles were still live"""
        device = self._contexts.pop(context_key, None)
        if device is None:
            return 0
        leaked = [hid for hid, owner in self._owners.items() if owner == context_key]
        for hid in leaked:
            self._owners.pop(hid)
            self._live.pop(hid, None)
        if device.type == 'cuda':
            torch.cuda.empty_cache()
        return len(leaked)

    def synchronize(self, context_key: str):
        self._sync_device(self._device(context_key))

    def live_handles(self, context_key: Optional[str] = None) -> int:
        if context_key is None:
            return len(self._live)
        return sum(1 for owner in self._owners.values() if owner == context_key)

    # Tensor creation and arithmetic

    def random_uniform(self, shape: Sequence[int], low: float, high: float,
                       context_key: str) -> TensorHandle:
        device = self._device(context_key)
        shape = tuple(shape)
        if not shape or any((not isinstance(s, int)) or s <= 0 for s in shape):
            raise ValueError(f"invalid tensor shape {shape}")
        if high <= low:
            raise ValueError(f"empty sampling range [{low}, {high})")
        t = torch.rand(shape, device=device, dtype=self.dtype)
        t.mul_(high - low).add_(low)
        return self._register(t, context_key)

    def matmul(self, a: TensorHandle, b: TensorHandle, context_key: str) -> TensorHandle:
        ta = self._tensor(a, context_key)
        tb = self._tensor(b, context_key)
        if ta.dim() != 2 or tb.dim() != 2 or ta.shape[1] != tb.shape[0]:
            raise ValueError(f"matmul shape mismatch: {tuple(ta.shape)} x {tuple(tb.shape)}")
        return self._register(torch.matmul(ta, tb), context_key)

    def add(self, a: TensorHandle, b: TensorHandle, context_key: str) -> TensorHandle:
        ta, tb = self._elementwise_operands(a, b, context_key, 'add')
        return self._register(torch.add(ta, tb), context_key)

    def multiply(self, a: TensorHandle, b: TensorHandle, context_key: str) -> TensorHandle:
        ta, tb = self._elementwise_operands(a, b, context_key, 'multiply')
        return self._register(torch.mul(ta, tb), context_key)

    def release(self, handle: TensorHandle):
        if self._live.pop(handle.handle_id, None) is None:
            raise ReleaseError(f"{handle!r} already released or unknown")
        self._owners.pop(handle.handle_id, None)

    # Internals

    def _device(self, context_key: str) -> torch.device:
        try:
            return self._contexts[context_key]
        except KeyError:
            raise ContextError(f"unknown context {context_key!r}") from None

    def _register(self, tensor: torch.Tensor, context_key: str) -> TensorHandle:
        hid = next(self._ids)
        self._live[hid] = tensor
        self._owners[hid] = context_key
        return TensorHandle(hid, context_key, tuple(tensor.shape))

    def _tensor(self, handle: TensorHandle, context_key: str) -> torch.Tensor:
        self._device(context_key)
        if handle.context_key != context_key:
            raise ContextError(
                f"{handle!r} belongs to context {handle.context_key!r}, not {context_key!r}")
        tensor = self._live.get(handle.handle_id)
        if tensor is None:
            raise ContextError(f"{handle!r} has been released")
        return tensor

    def _elementwise_operands(self, a, b, context_key, op):
        ta = self._tensor(a, context_key)
        tb = self._tensor(b, context_key)
        if ta.shape != tb.shape:
            raise ValueError(f"{op} shape mismatch: {tuple(ta.shape)} vs {tuple(tb.shape)}")
        return ta, tb

    @staticmethod
    def _sync_device(device: torch.device):
        if device.type == 'cuda':
            torch.cuda.synchronize(device)
        elif device.type == 'xpu':
            torch.xpu.synchronize(device)
        elif device.type == 'mps':
            torch.mps.synchronize()
