"""Declarative key mapping between backend records and entity records."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from spine_sync.core.enums import KeyMapFlag
from spine_sync.core.errors import SyncInvalidRecordError

KeyMap = Mapping[Any, Any]


class KeyMapper:
    """
    Rename and fan out record keys according to a key map.

    The map's keys are backend keys; each value is one entity key or a
    sequence of entity keys that all receive the backend value.

    Example:
        >>> mapper = KeyMapper({"cust_id": "id", "cust_name": ["name", "display_name"]})
        >>> mapper.map({"cust_id": 7, "cust_name": "Ada", "tier": "gold"})
        {'id': 7, 'name': 'Ada', 'display_name': 'Ada', 'tier': 'gold'}
    """

    def __init__(self, key_map: KeyMap, flags: KeyMapFlag | int = KeyMapFlag.ADD_UNMAPPED):
        self.flags = KeyMapFlag(flags)
        self._map: dict[Any, tuple[Any, ...]] = {}
        for source, targets in key_map.items():
            if isinstance(targets, Sequence) and not isinstance(targets, str):
                self._map[source] = tuple(targets)
            else:
                self._map[source] = (targets,)

    @property
    def key_map(self) -> dict[Any, tuple[Any, ...]]:
        return dict(self._map)

    def targets(self, source: Any) -> tuple[Any, ...]:
        """Entity keys that receive the value of backend key ``source``."""
        return self._map.get(source, ())

    def map(self, record: Mapping[Any, Any]) -> dict[Any, Any]:
        """Apply the key map to one record."""
        out: dict[Any, Any] = {}
        missing = []
        for source, targets in self._map.items():
            if source in record:
                value = record[source]
            elif self.flags & KeyMapFlag.REQUIRE_MAPPED:
                missing.append(source)
                continue
            elif self.flags & KeyMapFlag.ADD_MISSING:
                value = None
            else:
                continue
            for target in targets:
                out[target] = value

        if missing:
            raise SyncInvalidRecordError(
                f"Record is missing mapped keys: {', '.join(str(key) for key in missing)}",
                missing_keys=missing,
            )

        if self.flags & KeyMapFlag.ADD_UNMAPPED:
            for key, value in record.items():
                if key not in self._map and key not in out:
                    out[key] = value

        if self.flags & KeyMapFlag.REMOVE_NULL:
            out = {key: value for key, value in out.items() if value is not None}

        return out

    def inverse(self) -> dict[Any, Any]:
        """Entity key -> backend key, for entries that map to exactly one entity key."""
        return {targets[0]: source for source, targets in self._map.items() if len(targets) == 1}

    def __repr__(self) -> str:
        return f"KeyMapper({self._map!r}, flags={self.flags!r})"


__all__ = ["KeyMap", "KeyMapper"]
