"""Compartment ledger, cohort delay lines and the per-run Result Set."""

from __future__ import annotations

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

COMPARTMENTS = ["susceptible", "infected", "in_treatment", "recovered", "dead"]


class CompartmentState(BaseModel):
    susceptible: int = Field(ge=0)
    infected: int = Field(ge=0)
    in_treatment: int = Field(default=0, ge=0)
    recovered: int = Field(default=0, ge=0)
    dead: int = Field(default=0, ge=0)

    @classmethod
    def initial(cls, population: int, infected: int) -> "CompartmentState":
        return cls(susceptible=population - infected, infected=infected)

    def total(self) -> int:
        return (
            self.susceptible + self.infected + self.in_treatment
            + self.recovered + self.dead
        )


class DelayLine:
    """Ring buffer of cohort counts indexed by age in days (0 = newest).

    Holds ``length + 1`` cohorts between days. Each day ``evict()`` removes the
    oldest one, which leaves ``length`` live ages, and ``push()`` adds the
    newest one in the slot just freed.
    """

    def __init__(self, length: int, newest: int = 0):
        if length < 1:
            raise ValueError(f"Delay line length must be >= 1, got {length}")
        self.length = length
        self._buffer = np.zeros(length + 1, dtype=np.int64)
        self._head = 0
        self._buffer[0] = newest
        self._evicted = False

    def _slot(self, age: int) -> int:
        limit = self.length if self._evicted else self.length + 1
        if not 0 <= age < limit:
            raise IndexError(f"Age {age} outside delay line of {limit}")
        return (self._head + age) % (self.length + 1)

    def evict(self) -> int:
        if self._evicted:
            raise RuntimeError("evict() called twice without push()")
        slot = (self._head + self.length) % (self.length + 1)
        oldest = int(self._buffer[slot])
        self._buffer[slot] = 0
        self._evicted = True
        return oldest

    def push(self, count: int) -> None:
        if not self._evicted:
            raise RuntimeError("push() requires a prior evict()")
        self._head = (self._head - 1) % (self.length + 1)
        self._buffer[self._head] = count
        self._evicted = False

    def __getitem__(self, age: int) -> int:
        return int(self._buffer[self._slot(age)])

    def __len__(self) -> int:
        return self.length if self._evicted else self.length + 1

    def get(self, age: int) -> int:
        """Cohort at ``age``, or 0 when the age is not held."""
        if 0 <= age < len(self):
            return self[age]
        return 0

    def subtract(self, age: int, count: int) -> None:
        slot = self._slot(age)
        if count > self._buffer[slot]:
            raise ValueError(f"Cannot remove {count} from cohort of {self._buffer[slot]}")
        self._buffer[slot] -= count

    def _segments(self) -> tuple[np.ndarray, np.ndarray]:
        # Live ages run from the head slot and may wrap past the end of the buffer.
        n = len(self)
        first = self._buffer[self._head : self._head + n]
        return first, self._buffer[: n - len(first)]

    def ages(self) -> np.ndarray:
        """Cohorts ordered by age, newest first."""
        return np.concatenate(self._segments())

    def convolve(self, kernel: np.ndarray) -> float:
        """Dot product of ``kernel`` with the cohorts by age, without copying the buffer."""
        kernel = np.asarray(kernel, dtype=float)
        if len(kernel) != len(self):
            raise ValueError(f"Kernel of {len(kernel)} does not match delay line of {len(self)}")
        first, wrapped = self._segments()
        split = len(first)
        return float(np.dot(kernel[:split], first) + np.dot(kernel[split:], wrapped))

    def total(self) -> int:
        return int(self._buffer.sum())


class ResultSet(BaseModel):
    """Day-by-day compartment sizes from one simulation run."""

    model_config = ConfigDict(frozen=True)

    num_days: int
    susceptible: tuple[int, ...]
    infected: tuple[int, ...]
    recovered: tuple[int, ...]
    in_treatment: tuple[int, ...]
    dead: tuple[int, ...]

    def as_arrays(self) -> dict[str, np.ndarray]:
        return {name: np.array(getattr(self, name), dtype=np.int64) for name in COMPARTMENTS}

    def day(self, day: int) -> CompartmentState:
        return CompartmentState(**{name: getattr(self, name)[day] for name in COMPARTMENTS})
