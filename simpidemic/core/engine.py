"""Simulation Engine — day-by-day compartment transitions.

Every call to ``simulate()`` starts from a fresh Compartment State and returns
a new Result Set. Nothing is carried between calls.

Day ordering: the day's scheduled actions are applied first, then the oldest
cohorts are evicted, then new infections, treatment outcomes, triage and
immunity loss are computed from the state at the start of the day and applied
together. ``result.infected[d]`` is the state at the end of day ``d``.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from simpidemic.core.actions import ActionSchedule
from simpidemic.core.compartments import CompartmentState, DelayLine, ResultSet
from simpidemic.core.general import GeneralParameters, treatment_capacity
from simpidemic.core.parameters import round_half_away_from_zero
from simpidemic.core.virus import VirusModel

# Floor for the untreated mortality when used as a divisor.
MORTALITY_EPSILON = 1e-9

RoundingPolicy = Callable[[float], int]


class InvariantViolation(AssertionError):
    """Compartment bookkeeping drifted; this is a defect, not a user error."""


class DitheredRounding:
    """Adds uniform noise in [-scaler, scaler] before rounding.

    A scaler of 0 leaves rounding deterministic.
    """

    def __init__(self, scaler: float = 0.0, seed: int | None = None):
        if scaler < 0:
            raise ValueError(f"Dither scaler must be >= 0, got {scaler}")
        self.scaler = scaler
        self._rng = np.random.default_rng(seed)

    def __call__(self, value: float) -> int:
        if self.scaler:
            value += self._rng.uniform(-self.scaler, self.scaler)
        return round_half_away_from_zero(value)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def simulate(
    virus: VirusModel,
    general: GeneralParameters,
    schedule: ActionSchedule | None = None,
    initial_population: int = 1_000_000,
    initial_infected: int = 20,
    rounding: RoundingPolicy | None = None,
) -> ResultSet:
    """Run the model for ``general.num_days`` days and return the results."""
    if initial_population <= 0:
        raise ValueError(f"initial_population must be > 0, got {initial_population}")
    if not 0 <= initial_infected <= initial_population:
        raise ValueError(
            f"initial_infected must be within [0, {initial_population}], got {initial_infected}"
        )
    rnd = rounding or round_half_away_from_zero
    schedule = schedule or ActionSchedule()
    num_days = general.num_days.get_value()

    kernel = virus.kernel()
    mortality_treated = virus.mortality_treated.get_value()
    mortality_untreated = virus.mortality_untreated.get_value()
    day_treatment_begins = virus.day_treatment_begins.get_value()
    immunity_loss = virus.immunity_loss.get_value()
    treated_death_ratio = mortality_treated / max(mortality_untreated, MORTALITY_EPSILON)

    state = CompartmentState.initial(initial_population, initial_infected)
    infected_line = DelayLine(len(kernel), newest=initial_infected)
    treatment_line = DelayLine(virus.treatment_duration.get_value(), newest=0)

    contacts_per_day = general.contacts_per_day.get_value()
    capacity = treatment_capacity(
        general.treatment_capacity_per_100k.get_value(), initial_population
    )

    history: dict[str, list[int]] = {
        "susceptible": [], "infected": [], "recovered": [], "in_treatment": [], "dead": [],
    }

    for day in range(num_days):
        # a. scheduled overrides
        for action in schedule.get_daily_actions(day):
            if not action.active:
                continue
            if action.parameter_name == "contacts_per_day":
                contacts_per_day = action.value
            elif action.parameter_name == "treatment_capacity_per_100k":
                capacity = treatment_capacity(action.value, initial_population)

        # b. cohorts whose time is up
        ending_infection = infected_line.evict()
        ending_treatment = treatment_line.evict()

        # c. new infections
        transmission_rate = infected_line.convolve(kernel)
        beginning_infection = _clamp(
            rnd(contacts_per_day * transmission_rate * state.susceptible / initial_population),
            0,
            state.susceptible,
        )

        # d. treatment outcome
        die_after_treatment = _clamp(
            rnd(ending_treatment * treated_death_ratio), 0, ending_treatment
        )
        recover_after_treatment = ending_treatment - die_after_treatment

        # e. triage
        cohort = infected_line.get(day_treatment_begins)
        needing_treatment = _clamp(rnd(cohort * mortality_untreated / 100), 0, cohort)
        treatment_available = max(0, capacity - state.in_treatment)
        beginning_treatment = min(needing_treatment, treatment_available)
        die_for_lack_of_treatment = needing_treatment - beginning_treatment
        if needing_treatment:
            infected_line.subtract(day_treatment_begins, needing_treatment)

        # f. immunity loss
        lose_immunity = _clamp(rnd(immunity_loss * state.recovered / 100), 0, state.recovered)

        # g. apply
        state.susceptible += lose_immunity - beginning_infection
        state.recovered += ending_infection + recover_after_treatment - lose_immunity
        state.infected += beginning_infection - (ending_infection + needing_treatment)
        state.in_treatment += beginning_treatment - ending_treatment
        state.dead += die_after_treatment + die_for_lack_of_treatment

        # h. new cohorts
        infected_line.push(beginning_infection)
        treatment_line.push(beginning_treatment)

        # i. record
        history["susceptible"].append(state.susceptible)
        history["infected"].append(state.infected)
        history["recovered"].append(state.recovered)
        history["in_treatment"].append(state.in_treatment)
        history["dead"].append(state.dead)

        # j. bookkeeping checks
        _check_invariants(day, state, initial_population, infected_line, treatment_line)

    return ResultSet(num_days=num_days, **history)


def _check_invariants(
    day: int,
    state: CompartmentState,
    population: int,
    infected_line: DelayLine,
    treatment_line: DelayLine,
) -> None:
    total = state.total()
    if total != population:
        raise InvariantViolation(
            f"Day {day}: compartments sum to {total}, expected {population} ({state!r})"
        )
    if infected_line.total() != state.infected:
        raise InvariantViolation(
            f"Day {day}: infection delay line holds {infected_line.total()}, "
            f"infected is {state.infected}"
        )
    if treatment_line.total() != state.in_treatment:
        raise InvariantViolation(
            f"Day {day}: treatment delay line holds {treatment_line.total()}, "
            f"in treatment is {state.in_treatment}"
        )
    if min(state.susceptible, state.infected, state.in_treatment, state.recovered, state.dead) < 0:
        raise InvariantViolation(f"Day {day}: negative compartment ({state!r})")
