"""Parameters — named, bounded values with change notification."""

from __future__ import annotations

import math
from contextlib import contextmanager
from typing import Callable, Iterator, Union

from pydantic import BaseModel, PrivateAttr

DEFAULT_DIGITS = 5

Listener = Callable[["AnyParameter"], None]


def format_significant(value: float, digits: int = DEFAULT_DIGITS) -> str:
    """Format a number with a fixed count of significant digits."""
    return f"{value:.{digits}g}"


def _quantize(value: float, digits: int) -> float:
    return float(format_significant(value, digits))


def _check_finite(name: str, value: float) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{name}: value must be finite, got {value!r}")
    return value


def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class _Observable(BaseModel):
    name: str
    code: str
    description: str = ""
    unit: str = ""

    _listeners: list = PrivateAttr(default_factory=list)

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _fire(self) -> None:
        for listener in list(self._listeners):
            listener(self)


class FloatParameter(_Observable):
    min: float
    max: float
    value: float
    digits: int = DEFAULT_DIGITS
    actionable: bool = False

    def model_post_init(self, __context) -> None:
        self.value = self._coerce(self.value)

    def _coerce(self, value: float) -> float:
        value = _check_finite(self.name, value)
        return _quantize(min(max(value, self.min), self.max), self.digits)

    def get_value(self) -> float:
        return self.value

    def set_value(self, value: float) -> None:
        """Clamp into [min, max], quantize and notify listeners."""
        self.value = self._coerce(value)
        self._fire()

    def serialize(self) -> str:
        return format_significant(self.value, self.digits)

    def parse(self, text: str) -> float:
        return _check_finite(self.name, float(text))


class IntegerParameter(_Observable):
    min: int
    max: int
    value: int
    actionable: bool = False

    def model_post_init(self, __context) -> None:
        self.value = self._coerce(self.value)

    def _coerce(self, value: float) -> int:
        value = round_half_away_from_zero(_check_finite(self.name, value))
        return min(max(value, self.min), self.max)

    def get_value(self) -> int:
        return self.value

    def set_value(self, value: float) -> None:
        """Round, clamp into [min, max] and notify listeners."""
        self.value = self._coerce(value)
        self._fire()

    def serialize(self) -> str:
        return str(self.value)

    def parse(self, text: str) -> float:
        return _check_finite(self.name, float(text))


class ParameterArray(_Observable):
    """A bounded vector of floats, e.g. transmission probability by day."""

    min: float
    max: float
    data: list[float]
    digits: int = DEFAULT_DIGITS
    actionable: bool = False

    def model_post_init(self, __context) -> None:
        self.data = [self._coerce(v) for v in self.data]

    def _coerce(self, value: float) -> float:
        value = _check_finite(self.name, value)
        return _quantize(min(max(value, self.min), self.max), self.digits)

    def __len__(self) -> int:
        return len(self.data)

    def get_value(self, index: int) -> float:
        return self.data[index]

    def set_value(self, index: int, value: float) -> None:
        self.data[index] = self._coerce(value)
        self._fire()

    def values(self) -> list[float]:
        return list(self.data)

    def set_values(self, values: list[float]) -> None:
        if len(values) != len(self.data):
            raise ValueError(
                f"{self.name}: expected {len(self.data)} values, got {len(values)}"
            )
        self.data = [self._coerce(v) for v in values]
        self._fire()

    def serialize(self) -> str:
        return ",".join(format_significant(v, self.digits) for v in self.data)

    def parse(self, text: str) -> list[float]:
        values = [_check_finite(self.name, float(part)) for part in text.split(",")]
        if len(values) != len(self.data):
            raise ValueError(
                f"{self.name}: expected {len(self.data)} values, got {len(values)}"
            )
        return values


AnyParameter = Union[FloatParameter, IntegerParameter, ParameterArray]


class ParameterSet:
    """Ordered registry of parameters that relays their change notifications.

    Inside ``batch_update()`` notifications are held back and a single one is
    sent when the outermost batch closes, so bulk edits trigger one refresh.
    """

    def __init__(self, parameters: list[AnyParameter] | None = None):
        self._by_name: dict[str, AnyParameter] = {}
        self._by_code: dict[str, AnyParameter] = {}
        self._subscribers: list[Callable[[], None]] = []
        self._batch_depth = 0
        self._dirty = False
        for parameter in parameters or []:
            self.add(parameter)

    def add(self, parameter: AnyParameter) -> AnyParameter:
        if parameter.name in self._by_name:
            raise ValueError(f"Duplicate parameter name: {parameter.name}")
        if parameter.code in self._by_code:
            raise ValueError(f"Duplicate parameter code: {parameter.code}")
        self._by_name[parameter.name] = parameter
        self._by_code[parameter.code] = parameter
        parameter.add_listener(self._on_change)
        return parameter

    def remove(self, name: str) -> None:
        parameter = self._by_name.pop(name)
        del self._by_code[parameter.code]
        parameter.remove_listener(self._on_change)

    def __getitem__(self, name: str) -> AnyParameter:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"Unknown parameter: {name}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[AnyParameter]:
        return iter(list(self._by_name.values()))

    def __len__(self) -> int:
        return len(self._by_name)

    def by_code(self, code: str) -> AnyParameter | None:
        return self._by_code.get(code)

    def subscribe(self, callback: Callable[[], None]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[], None]) -> None:
        self._subscribers.remove(callback)

    @property
    def updating(self) -> bool:
        return self._batch_depth > 0

    @contextmanager
    def batch_update(self) -> Iterator["ParameterSet"]:
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                self._notify()

    def touch(self) -> None:
        """Report a change that did not come from a parameter (e.g. actions)."""
        self._on_change(None)

    def _on_change(self, parameter) -> None:
        if self._batch_depth:
            self._dirty = True
            return
        self._notify()

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback()
