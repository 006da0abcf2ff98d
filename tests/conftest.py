from collections import Counter

import pytest


class FakeHandle:
    def __init__(self, hid, context_key, shape):
        self.hid = hid
        self.context_key = context_key
        self.shape = shape

    def __repr__(self):
        return f"FakeHandle({self.hid})"


class FakeTensorLibrary:
    """In-memory stand-in for the tensor library that counts every handle.

    ``fail_init`` lists adapter indices whose init_context returns False.
    ``raise_at`` maps adapter index to the 1-based operation number that raises.
    """

    def __init__(self, adapters=None, fail_init=(), raise_at=None,
                 with_sync=True, with_close=True):
        self.adapters = list(adapters or [])
        self.fail_init = set(fail_init)
        self.raise_at = dict(raise_at or {})
        self.contexts = {}
        self.live = {}
        self.acquired = Counter()
        self.released = Counter()
        self.ops = Counter()
        self.syncs = 0
        self.closed = []
        self._next = 0
        if not with_sync:
            self.synchronize = None
        if not with_close:
            self.close_context = None

    def list_adapters(self):
        return self.adapters

    def init_context(self, adapter_index, context_key):
        if adapter_index in self.fail_init:
            return False
        self.contexts[context_key] = adapter_index
        return True

    def synchronize(self, context_key):
        self.syncs += 1

    def close_context(self, context_key):
        self.closed.append(context_key)
        self.contexts.pop(context_key)
        return sum(1 for h in self.live.values() if h.context_key == context_key)

    def _new(self, context_key, shape):
        if context_key not in self.contexts:
            raise RuntimeError(f"unknown context {context_key}")
        adapter = self.contexts[context_key]
        self.ops[context_key] += 1
        if self.raise_at.get(adapter) == self.ops[context_key]:
            raise RuntimeError("device lost")
        self._next += 1
        handle = FakeHandle(self._next, context_key, tuple(shape))
        self.live[handle.hid] = handle
        self.acquired[context_key] += 1
        return handle

    def random_uniform(self, shape, low, high, context_key):
        return self._new(context_key, shape)

    def matmul(self, a, b, context_key):
        if a.shape[1] != b.shape[0]:
            raise ValueError("shape mismatch")
        return self._new(context_key, (a.shape[0], b.shape[1]))

    def add(self, a, b, context_key):
        return self._new(context_key, a.shape)

    def multiply(self, a, b, context_key):
        return self._new(context_key, a.shape)

    def release(self, handle):
        if self.live.pop(handle.hid, None) is None:
            raise RuntimeError(f"double release of {handle!r}")
        self.released[handle.context_key] += 1


class FakeClock:
    """Clock whose consecutive start/stop pairs differ by the given durations (ms)"""

    def __init__(self, durations_ms):
        self.values = []
        t = 100.0
        for d in durations_ms:
            self.values.extend([t, t + d / 1000.0])
            t += 1.0
        self.calls = 0

    def __call__(self):
        value = self.values[self.calls]
        self.calls += 1
        return value


def two_adapters():
    return [{'name': 'Fast GPU', 'backend': 'vulkan'}, {'name': 'Slow GPU', 'backend': 'dx12'}]


@pytest.fixture
def fake_library():
    return FakeTensorLibrary(adapters=two_adapters())


@pytest.fixture
def make_library():
    return FakeTensorLibrary
