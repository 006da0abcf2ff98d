"""
Adapter discovery on top of the tensor library
"""
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class AdapterDescriptor:
    index: int
    name: str
    backend: str

    @property
    def context_key(self) -> str:
        return f"adapter_{self.index}"


def _field(entry, key: str) -> str:
    if isinstance(entry, dict):
        return str(entry.get(key, 'unknown'))
    return str(getattr(entry, key, 'unknown'))


def list_adapters(library) -> List[AdapterDescriptor]:
    """Enumerate adapters; positional index is the join key for the whole run"""
    raw = library.list_adapters()
    if not raw:
        return []
    return [AdapterDescriptor(index=i, name=_field(entry, 'name'), backend=_field(entry, 'backend'))
            for i, entry in enumerate(raw)]
