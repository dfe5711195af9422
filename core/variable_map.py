"""
Name to flat-offset index for state variables and auxiliary outputs.

Entries are laid out contiguously in declaration order, starting at
offset 0. Vector and matrix values occupy np.size(value) consecutive
slots (row-major).
"""

from typing import Iterator, List, NamedTuple, Sequence, Union

import numpy as np

from .descriptor import Entry


class MapEntry(NamedTuple):
    """Location of one named entry in the flat vector."""
    name: str
    offset: int
    length: int

    @property
    def indices(self) -> np.ndarray:
        return np.arange(self.offset, self.offset + self.length)


class VariableMap:
    """
    Immutable map from entry names to flat offsets.

    Example:
        >>> vmap = VariableMap.build([Entry('x', 0.0), Entry('y', [1.0, 2.0])])
        >>> list(vmap)
        [MapEntry(name='x', offset=0, length=1), MapEntry(name='y', offset=1, length=2)]
    """

    def __init__(self, entries: Sequence[MapEntry]):
        self._entries = tuple(entries)
        self._by_name = {e.name: e for e in self._entries}

    @classmethod
    def build(cls, entries: Sequence[Entry]) -> 'VariableMap':
        """Assign offsets by cumulative sum of the preceding lengths."""
        mapped = []
        offset = 0
        for entry in entries or []:
            length = entry.size
            mapped.append(MapEntry(entry.name, offset, length))
            offset += length
        return cls(mapped)

    @property
    def total(self) -> int:
        """Total flattened length."""
        if not self._entries:
            return 0
        last = self._entries[-1]
        return last.offset + last.length

    @property
    def names(self) -> List[str]:
        return [e.name for e in self._entries]

    def __getitem__(self, name: str) -> MapEntry:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"No entry named '{name}'") from None

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[MapEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VariableMap):
            return NotImplemented
        return self._entries == other._entries

    def indices(self, names: Union[str, Sequence[str]]) -> np.ndarray:
        """Flat row indices of one or more named entries, in the given order."""
        if isinstance(names, str):
            names = [names]
        if not names:
            return np.array([], dtype=int)
        return np.concatenate([self[name].indices for name in names])

    def flatten(self, entries: Sequence[Entry]) -> np.ndarray:
        """Concatenate entry values into one flat float vector."""
        if self.needs_rebuild(entries):
            raise ValueError("Entries do not match the layout of this map")
        if not entries:
            return np.zeros(0)
        return np.concatenate([np.ravel(np.asarray(e.value, dtype=float)) for e in entries])

    def needs_rebuild(self, entries: Sequence[Entry]) -> bool:
        """True when the entry count or any entry length differs from the map."""
        entries = entries or []
        if len(entries) != len(self._entries):
            return True
        return any(e.name != m.name or e.size != m.length
                   for e, m in zip(entries, self._entries))

    def __repr__(self) -> str:
        return f"VariableMap({list(self._entries)!r})"
