"""
Per-adapter execution contexts and scoped tensor ownership
"""
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .adapters import AdapterDescriptor
from .benchmark_utils import AdapterResult


@dataclass(frozen=True)
class ContextToken:
    """Handle to an initialized context; only produced by open_context"""
    adapter_index: int
    key: str


def open_context(library, adapter: AdapterDescriptor) -> Optional[ContextToken]:
    """Initialize the adapter's context; None when the library reports failure"""
    key = adapter.context_key
    if not library.init_context(adapter.index, key):
        return None
    return ContextToken(adapter_index=adapter.index, key=key)


def close_context(library, token: ContextToken):
    closer = getattr(library, 'close_context', None)
    if closer is None:
        return
    leaked = closer(token.key)
    if leaked:
        print(f"WARNING: {leaked} tensor(s) still live when closing {token.key}")


def synchronizer(library, token: ContextToken) -> Optional[Callable[[], None]]:
    sync = getattr(library, 'synchronize', None)
    if sync is None:
        return None
    return lambda: sync(token.key)


class TensorScope:
    """Owns every tensor handle created through it.

    Handles are released in reverse creation order when the scope exits.
    On an exceptional exit, release errors are reported but never replace
    the exception already in flight.
    """

    def __init__(self, library, token: ContextToken):
        self.library = library
        self.token = token
        self.acquired = 0
        self.released = 0
        self._handles: List = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release_all(best_effort=exc_type is not None)
        return False

    @property
    def live(self) -> int:
        return len(self._handles)

    def track(self, handle):
        self._handles.append(handle)
        self.acquired += 1
        return handle

    def random_uniform(self, shape: Sequence[int], low: float = 0.0, high: float = 1.0):
        return self.track(self.library.random_uniform(list(shape), low, high, self.token.key))

    def matmul(self, a, b):
        return self.track(self.library.matmul(a, b, self.token.key))

    def add(self, a, b):
        return self.track(self.library.add(a, b, self.token.key))

    def multiply(self, a, b):
        return self.track(self.library.multiply(a, b, self.token.key))

    def release(self, handle):
        for i, owned in enumerate(self._handles):
            if owned is handle:
                del self._handles[i]
                break
        else:
            raise ValueError(f"{handle!r} is not owned by this scope")
        self.released += 1
        self.library.release(handle)

    def release_all(self, best_effort: bool = False):
        first_error = None
        while self._handles:
            handle = self._handles.pop()
            self.released += 1
            try:
                self.library.release(handle)
            except Exception as e:
                if best_effort:
                    print(f"WARNING: failed to release {handle!r}: {e}")
                elif first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error


def error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def run_in_context(library, adapter: AdapterDescriptor,
                   body: Callable[[ContextToken, TensorScope], AdapterResult]) -> AdapterResult:
    """Run ``body`` inside the adapter's context and always return one result.

    INIT_FAILED when the context cannot be opened, ERROR when anything in
    ``body`` (or releasing its tensors) raises, otherwise body's result.
    """
    try:
        token = open_context(library, adapter)
    except Exception as e:
        print(f"ERROR: Error with adapter {adapter.index}: {error_message(e)}")
        return AdapterResult.error(adapter, error_message(e))

    if token is None:
        print(f"FAILED: Adapter {adapter.index} initialization failed")
        return AdapterResult.init_failed(adapter)

    print(f"SUCCESS: GPU context initialized: {token.key}")
    try:
        with TensorScope(library, token) as scope:
            result = body(token, scope)
    except Exception as e:
        print(f"ERROR: Error with adapter {adapter.index}: {error_message(e)}")
        result = AdapterResult.error(adapter, error_message(e))
    finally:
        try:
            close_context(library, token)
        except Exception as e:
            print(f"WARNING: closing {token.key} failed: {error_message(e)}")
    return result
