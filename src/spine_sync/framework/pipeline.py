"""
Ordered payload pipelines.

A ``Pipeline`` is an immutable list of stages plus an optional terminal
callable. Each stage receives the payload, a ``next`` callable that runs the
rest of the pipeline, and the pipeline argument (for sync definitions, a
tuple of ``(operation, ctx, *args)``):

    def stage(payload, next_, arg):
        return next_(transform(payload))

Usage:
    pipeline = (
        Pipeline.create()
        .through(strip_whitespace)
        .through_key_map({"cust_id": "id"})
        .then(lambda record, arg: Contact(**record))
    )
    contact = pipeline.send({"cust_id": 7}, arg)
    contacts = list(pipeline.stream(records, arg))
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, replace
from typing import Any

from spine_sync.core.enums import KeyMapFlag
from spine_sync.framework.keymap import KeyMap, KeyMapper

Stage = Callable[[Any, Callable[[Any], Any], Any], Any]
Terminal = Callable[[Any, Any], Any]


@dataclass(frozen=True)
class Pipeline:
    """Immutable stage composer. Builder methods return new pipelines."""

    stages: tuple[Stage, ...] = ()
    terminal: Terminal | None = None

    @classmethod
    def create(cls) -> Pipeline:
        return cls()

    def through(self, stage: Stage) -> Pipeline:
        """Append a stage."""
        return replace(self, stages=self.stages + (stage,))

    def through_callback(self, callback: Callable[[Any], Any]) -> Pipeline:
        """Append a stage that applies ``callback`` to the payload."""

        def stage(payload: Any, next_: Callable[[Any], Any], arg: Any) -> Any:
            return next_(callback(payload))

        return self.through(stage)

    def through_key_map(
        self,
        key_map: KeyMap,
        flags: KeyMapFlag | int = KeyMapFlag.ADD_UNMAPPED,
    ) -> Pipeline:
        """Append a stage that applies a key map to each payload."""
        return self.through_callback(KeyMapper(key_map, flags).map)

    def then(self, terminal: Terminal) -> Pipeline:
        """Set the terminal callable, chaining after any existing one."""
        if self.terminal is None:
            return replace(self, terminal=terminal)
        previous = self.terminal

        def chained(payload: Any, arg: Any) -> Any:
            return terminal(previous(payload, arg), arg)

        return replace(self, terminal=chained)

    def send(self, payload: Any, arg: Any = None) -> Any:
        """Run one payload through every stage and the terminal."""

        def run(index: int, value: Any) -> Any:
            if index == len(self.stages):
                return value if self.terminal is None else self.terminal(value, arg)
            return self.stages[index](value, lambda result: run(index + 1, result), arg)

        return run(0, payload)

    def stream(self, payloads: Iterable[Any], arg: Any = None) -> Iterator[Any]:
        """Lazily run each payload through the pipeline."""
        for payload in payloads:
            yield self.send(payload, arg)


__all__ = ["Pipeline", "Stage", "Terminal"]
