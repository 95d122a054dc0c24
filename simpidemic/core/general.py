"""General (non-virus) simulation parameters."""

from __future__ import annotations

from simpidemic.core.parameters import (
    FloatParameter,
    IntegerParameter,
    round_half_away_from_zero,
)


class GeneralParameters:
    """Contact rate, treatment capacity and run length."""

    def __init__(
        self,
        contacts_per_day: float = 15.0,
        treatment_capacity_per_100k: int = 25,
        num_days: int = 200,
    ):
        self.contacts_per_day = FloatParameter(
            name="contacts_per_day",
            code="cpd",
            description="Contacts per day",
            unit="people/day",
            min=0.0,
            max=30.0,
            value=contacts_per_day,
            actionable=True,
        )
        self.treatment_capacity_per_100k = IntegerParameter(
            name="treatment_capacity_per_100k",
            code="tcap",
            description="Treatment capacity per 100K",
            unit="beds/100K",
            min=0,
            max=3000,
            value=treatment_capacity_per_100k,
            actionable=True,
        )
        self.num_days = IntegerParameter(
            name="num_days",
            code="nd",
            description="Number of days to simulate",
            unit="days",
            min=40,
            max=1000,
            value=num_days,
        )

    def parameters(self) -> list:
        return [self.contacts_per_day, self.treatment_capacity_per_100k, self.num_days]


def treatment_capacity(per_100k: float, population: int) -> int:
    """Absolute treatment capacity for a population."""
    return round_half_away_from_zero(per_100k * population / 100000)
