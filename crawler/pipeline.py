"""
Pipes transform response content; a Pipeline folds a value through its pipes.

A pipe that cannot handle its input returns None instead of raising.
Only PipeError is allowed to escape a pipeline.
"""

import json
from typing import Any, Callable, List, Optional

import structlog

from .exceptions import PipeError

logger = structlog.get_logger(__name__)


class Pipe:
    """Base class of a single value transform."""

    def transform(self, value: Any) -> Any:
        raise NotImplementedError

    def __call__(self, value: Any) -> Any:
        return self.transform(value)


class JSONPipe(Pipe):
    """Decode JSON text (str or bytes); malformed input yields None."""

    def transform(self, value: Any) -> Any:
        if value is None:
            return None
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            return None


class CallbackPipe(Pipe):
    def __init__(self, callback: Optional[Callable[[Any], Any]] = None):
        self.callback = callback

    def transform(self, value: Any) -> Any:
        return self.callback(value) if self.callback else None


class Pipeline:
    def __init__(self, *pipes: Pipe):
        self.active = True
        self._pipes: List[Pipe] = []
        self.set_pipes(pipes)

    @property
    def pipes(self) -> List[Pipe]:
        return list(self._pipes)

    def set_pipes(self, pipes):
        self._pipes = []
        for pipe in pipes:
            self.add(pipe)

    def __len__(self) -> int:
        return len(self._pipes)

    def enable(self):
        self.active = True

    def disable(self):
        self.active = False

    def clear(self):
        self._pipes = []

    def add(self, pipe: Pipe):
        if not isinstance(pipe, Pipe):
            raise TypeError(f"Expected a Pipe, got {type(pipe).__name__}")
        self._pipes.append(pipe)

    def remove(self, pipe: Pipe):
        self._pipes = [item for item in self._pipes if item is not pipe]

    def remove_at(self, index: int):
        if -len(self._pipes) <= index < len(self._pipes):
            del self._pipes[index]

    def remove_last(self):
        if self._pipes:
            self._pipes.pop()

    def perform(self, value: Any) -> Any:
        """Fold ``value`` through the pipes, left to right."""
        for pipe in self._pipes:
            try:
                value = pipe.transform(value)
            except PipeError:
                raise
            except Exception as e:
                logger.warning("pipe_transform_failed",
                               pipe=type(pipe).__name__,
                               error=str(e))
                return None
        return value
