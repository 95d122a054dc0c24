"""Virus models — transmission kernel plus mortality and treatment parameters."""

from __future__ import annotations

import math

import numpy as np

from simpidemic.core.parameters import (
    FloatParameter,
    IntegerParameter,
    ParameterArray,
    round_half_away_from_zero,
)

# Probability that one infected person infects one contact, by days since
# infection.
DEFAULT_TRANSMISSION_TABLE = [
    0.0, 0.005, 0.01, 0.02, 0.03, 0.03, 0.025,
    0.02, 0.015, 0.01, 0.008, 0.005, 0.003, 0.001,
]

# Kernel is truncated beyond this multiple of the peak day.
KERNEL_CUTOFF_PEAKS = 6


class VirusModel:
    """Mortality and treatment parameters shared by every kernel variant."""

    kind = ""

    def __init__(
        self,
        mortality_treated: float = 2.0,
        mortality_untreated: float = 4.0,
        day_treatment_begins: int = 7,
        treatment_duration: int = 14,
        immunity_loss: float = 0.2,
    ):
        self.mortality_treated = FloatParameter(
            name="mortality_treated",
            code="mtr",
            description="Mortality with treatment",
            unit="%",
            min=0.0,
            max=100.0,
            value=mortality_treated,
        )
        self.mortality_untreated = FloatParameter(
            name="mortality_untreated",
            code="mun",
            description="Mortality without treatment",
            unit="%",
            min=0.0,
            max=100.0,
            value=mortality_untreated,
        )
        self.day_treatment_begins = IntegerParameter(
            name="day_treatment_begins",
            code="dtb",
            description="Day of infection when treatment begins",
            unit="day",
            min=1,
            max=30,
            value=day_treatment_begins,
        )
        self.treatment_duration = IntegerParameter(
            name="treatment_duration",
            code="tdur",
            description="Treatment duration",
            unit="days",
            min=1,
            max=60,
            value=treatment_duration,
        )
        self.immunity_loss = FloatParameter(
            name="immunity_loss",
            code="iml",
            description="Recovered who lose immunity each day",
            unit="%/day",
            min=0.0,
            max=10.0,
            value=immunity_loss,
        )

    @property
    def infection_duration(self) -> int:
        raise NotImplementedError

    def transmission_probability(self, day: int) -> float:
        raise NotImplementedError

    def kernel(self) -> np.ndarray:
        """Transmission probability for ages 0 .. infection_duration - 1."""
        return np.array(
            [self.transmission_probability(d) for d in range(self.infection_duration)],
            dtype=float,
        )

    def parameters(self) -> list:
        return [
            self.mortality_treated,
            self.mortality_untreated,
            self.day_treatment_begins,
            self.treatment_duration,
            self.immunity_loss,
        ]


class PeakVirusModel(VirusModel):
    """Closed-form kernel rising to a peak then decaying exponentially."""

    kind = "peak"

    def __init__(self, peak_day: float = 4.0, contagiousness: float = 0.20, **kwargs):
        super().__init__(**kwargs)
        self.peak_day = FloatParameter(
            name="peak_day",
            code="pkd",
            description="Most contagious day after infection",
            unit="days",
            min=0.5,
            max=20.0,
            value=peak_day,
        )
        self.contagiousness = FloatParameter(
            name="contagiousness",
            code="ctg",
            description="Contagiousness",
            min=0.01,
            max=1.0,
            value=contagiousness,
        )

    @property
    def infection_duration(self) -> int:
        return max(1, round_half_away_from_zero(self.peak_day.get_value() * KERNEL_CUTOFF_PEAKS))

    def transmission_probability(self, day: int) -> float:
        if day < 0:
            return 0.0
        peak = self.peak_day.get_value()
        x = day / peak
        probability = self.contagiousness.get_value() * x / (peak * math.exp(x))
        return min(1.0, probability)

    def parameters(self) -> list:
        return [self.peak_day, self.contagiousness] + super().parameters()


class TableVirusModel(VirusModel):
    """Kernel read from an editable per-day probability table."""

    kind = "table"

    def __init__(self, table: list[float] | None = None, **kwargs):
        super().__init__(**kwargs)
        self.transmission_table = ParameterArray(
            name="transmission_table",
            code="ttab",
            description="Transmission probability by day of infection",
            min=0.0,
            max=1.0,
            data=list(table if table is not None else DEFAULT_TRANSMISSION_TABLE),
        )

    @property
    def infection_duration(self) -> int:
        return len(self.transmission_table)

    def transmission_probability(self, day: int) -> float:
        if 0 <= day < len(self.transmission_table):
            return self.transmission_table.get_value(day)
        return 0.0

    def kernel(self) -> np.ndarray:
        return np.array(self.transmission_table.values(), dtype=float)

    def parameters(self) -> list:
        return [self.transmission_table] + super().parameters()


VIRUS_MODELS = {
    PeakVirusModel.kind: PeakVirusModel,
    TableVirusModel.kind: TableVirusModel,
}


def make_virus_model(kind: str = "peak", **kwargs) -> VirusModel:
    try:
        cls = VIRUS_MODELS[kind]
    except KeyError:
        raise ValueError(f"Unknown kernel {kind!r}; choose from {sorted(VIRUS_MODELS)}") from None
    return cls(**kwargs)
