"""End-to-end tests of the simulation engine on the reference scenario.

Scenario: population 1,000,000, 20 initially infected, 15 contacts/day, peak
contagion on day 4, treatment begins on day 7 and lasts 14 days.
"""

import pytest

from simpidemic.core.actions import Action, ActionSchedule
from simpidemic.core.compartments import CompartmentState, DelayLine
from simpidemic.core.engine import (
    DitheredRounding,
    InvariantViolation,
    _check_invariants,
    round_half_away_from_zero,
    simulate,
)
from simpidemic.core.general import GeneralParameters
from simpidemic.core.virus import PeakVirusModel, TableVirusModel

POPULATION = 1_000_000


def _scenario(
    contacts_per_day=15.0,
    treatment_capacity_per_100k=25,
    num_days=60,
    **virus_kwargs,
):
    virus_args = dict(
        peak_day=4.0,
        contagiousness=0.20,
        mortality_treated=2.0,
        mortality_untreated=4.0,
        day_treatment_begins=7,
        treatment_duration=14,
        immunity_loss=0.2,
    )
    virus_args.update(virus_kwargs)
    virus = PeakVirusModel(**virus_args)
    general = GeneralParameters(
        contacts_per_day=contacts_per_day,
        treatment_capacity_per_100k=treatment_capacity_per_100k,
        num_days=num_days,
    )
    return virus, general


def _contacts_action(day, value, active=True):
    return Action(day=day, parameter_name="contacts_per_day", code="cpd", value=value, active=active)


def _zero_contacts_from_start():
    schedule = ActionSchedule()
    schedule.add(_contacts_action(0, 0.0))
    return schedule


def _run(schedule=None, **kwargs):
    virus, general = _scenario(**kwargs)
    return simulate(virus, general, schedule, initial_population=POPULATION, initial_infected=20)


class TestScenario:
    def test_day_zero_is_post_transition_state(self):
        r = _run()
        # The kernel is zero at age 0, so nobody is infected on day 0.
        assert r.infected[0] == 20
        assert r.susceptible[0] == 999_980
        assert r.susceptible[0] + r.infected[0] == POPULATION
        assert r.recovered[0] == 0
        assert r.in_treatment[0] == 0
        assert r.dead[0] == 0

    def test_result_length(self):
        r = _run()
        assert r.num_days == 60
        for series in (r.susceptible, r.infected, r.recovered, r.in_treatment, r.dead):
            assert len(series) == 60

    def test_epidemic_grows(self):
        r = _run()
        peak = max(r.infected)
        assert peak > r.infected[0]
        assert r.infected.index(peak) > 0

    def test_first_triage_on_treatment_day(self):
        # The initial cohort of 20 reaches day 7: round(20 * 4%) = 1 needs treatment.
        r = _run()
        assert r.in_treatment[6] == 0
        assert r.in_treatment[7] == 1
        assert r.dead[7] == 0


class TestInvariants:
    @pytest.mark.parametrize("kwargs", [
        {},
        {"contacts_per_day": 30.0, "num_days": 300},
        {"treatment_capacity_per_100k": 0, "num_days": 200},
        {"immunity_loss": 5.0, "num_days": 400},
        {"mortality_treated": 50.0, "mortality_untreated": 10.0, "num_days": 200},
    ])
    def test_population_conserved(self, kwargs):
        r = _run(**kwargs)
        for d in range(r.num_days):
            total = r.susceptible[d] + r.infected[d] + r.recovered[d] + r.in_treatment[d] + r.dead[d]
            assert total == POPULATION, f"day {d}: {total}"

    def test_deaths_never_decrease(self):
        r = _run(num_days=300, contacts_per_day=20.0)
        assert all(b >= a for a, b in zip(r.dead, r.dead[1:]))

    def test_compartments_non_negative(self):
        r = _run(num_days=300, contacts_per_day=30.0, immunity_loss=10.0)
        for series in (r.susceptible, r.infected, r.recovered, r.in_treatment, r.dead):
            assert min(series) >= 0

    def test_deterministic(self):
        a = _run(num_days=200)
        b = _run(num_days=200)
        assert a == b
        assert a.model_dump_json() == b.model_dump_json()

    def test_fresh_state_every_call(self):
        virus, general = _scenario()
        first = simulate(virus, general)
        simulate(virus, general)
        assert simulate(virus, general) == first


class TestContacts:
    def test_zero_contacts_only_ages_out(self):
        r = _run(_zero_contacts_from_start())
        assert all(b <= a for a, b in zip(r.infected, r.infected[1:]))
        # The initial cohort leaves after 24 days (6 x peak day).
        assert r.infected[23] > 0
        assert r.infected[24] == 0
        assert r.infected[-1] == 0

    def test_zero_contacts_parameter(self):
        r = _run(contacts_per_day=0.0)
        assert min(r.susceptible) == POPULATION - 20
        assert all(b <= a for a, b in zip(r.infected, r.infected[1:]))
        assert r.infected[24] == 0
        assert r == _run(_zero_contacts_from_start())

    def test_action_stops_new_infections(self):
        schedule = ActionSchedule()
        schedule.add(_contacts_action(10, 0.0))
        r = _run(schedule)
        baseline = _run()
        assert r.infected[:10] == baseline.infected[:10]
        for d in range(11, r.num_days):
            assert r.infected[d] <= r.infected[d - 1]
        assert all(v == 0 for v in r.infected[10 + 24:])
        assert baseline.infected[40] > 0

    def test_inactive_action_is_ignored(self):
        schedule = ActionSchedule()
        schedule.add(_contacts_action(10, 0.0, active=False))
        assert _run(schedule) == _run()

    def test_capacity_action_recomputes_capacity(self):
        schedule = ActionSchedule()
        schedule.add(Action(
            day=0, parameter_name="treatment_capacity_per_100k", code="tcap", value=0,
        ))
        r = _run(schedule)
        assert all(v == 0 for v in r.in_treatment)

    def test_unknown_action_parameter_is_skipped(self):
        schedule = ActionSchedule()
        schedule.add(Action(day=5, parameter_name="num_days", code="nd", value=40))
        assert _run(schedule) == _run()


class TestTreatment:
    def test_no_capacity_starves_treatment(self):
        r = _run(treatment_capacity_per_100k=0)
        assert all(v == 0 for v in r.in_treatment)
        # The one person needing treatment on day 7 dies immediately.
        assert r.dead[6] == 0
        assert r.dead[7] == 1
        assert r.dead[-1] > 0

    def test_no_capacity_costs_lives(self):
        starved = _run(treatment_capacity_per_100k=0, num_days=120, immunity_loss=0.0)
        treated = _run(treatment_capacity_per_100k=3000, num_days=120, immunity_loss=0.0)
        assert starved.infected == treated.infected
        assert starved.dead[-1] >= treated.dead[-1]

    def test_zero_untreated_mortality(self):
        r = _run(mortality_untreated=0.0, num_days=120)
        assert all(v == 0 for v in r.dead)
        assert all(v == 0 for v in r.in_treatment)

    def test_treated_mortality_above_untreated_is_capped(self):
        r = _run(mortality_treated=100.0, mortality_untreated=1.0, num_days=120)
        assert all(v >= 0 for v in r.recovered)

    def test_treatment_day_beyond_infection(self):
        # Infection lasts 6 days with a 1-day peak; nobody is ever triaged on day 30.
        r = _run(peak_day=1.0, day_treatment_begins=30, num_days=80)
        assert all(v == 0 for v in r.in_treatment)
        assert all(v == 0 for v in r.dead)


class TestImmunityLoss:
    def test_recovered_return_to_susceptible(self):
        without = _run(immunity_loss=0.0, num_days=200)
        with_loss = _run(immunity_loss=5.0, num_days=200)
        assert with_loss.recovered[-1] < without.recovered[-1]


class TestTableKernel:
    def test_runs_and_conserves(self):
        virus = TableVirusModel()
        general = GeneralParameters(contacts_per_day=20.0, num_days=150)
        r = simulate(virus, general, initial_population=POPULATION, initial_infected=20)
        for d in range(r.num_days):
            assert r.susceptible[d] + r.infected[d] + r.recovered[d] + r.in_treatment[d] + r.dead[d] == POPULATION

    def test_zero_table_never_spreads(self):
        virus = TableVirusModel(table=[0.0] * 10)
        general = GeneralParameters(num_days=40)
        r = simulate(virus, general, initial_population=1000, initial_infected=10)
        assert max(r.infected) == 10
        assert r.infected[-1] == 0


class TestRounding:
    @pytest.mark.parametrize("value,expected", [
        (0.5, 1), (1.5, 2), (2.5, 3), (0.49, 0), (-0.5, -1), (-1.4, -1), (3.0, 3),
    ])
    def test_half_away_from_zero(self, value, expected):
        assert round_half_away_from_zero(value) == expected

    def test_zero_dither_matches_default(self):
        virus, general = _scenario()
        assert simulate(virus, general, rounding=DitheredRounding(0.0)) == simulate(virus, general)

    def test_seeded_dither_is_repeatable_and_conserves(self):
        virus, general = _scenario(num_days=120)
        a = simulate(virus, general, rounding=DitheredRounding(0.5, seed=7))
        b = simulate(virus, general, rounding=DitheredRounding(0.5, seed=7))
        assert a == b
        for d in range(a.num_days):
            assert a.susceptible[d] + a.infected[d] + a.recovered[d] + a.in_treatment[d] + a.dead[d] == POPULATION

    def test_negative_dither_rejected(self):
        with pytest.raises(ValueError):
            DitheredRounding(-1.0)


class TestValidation:
    def test_infected_above_population(self):
        virus, general = _scenario()
        with pytest.raises(ValueError):
            simulate(virus, general, initial_population=10, initial_infected=11)

    def test_non_positive_population(self):
        virus, general = _scenario()
        with pytest.raises(ValueError):
            simulate(virus, general, initial_population=0, initial_infected=0)

    def test_drift_is_reported(self):
        state = CompartmentState(susceptible=90, infected=5)
        line = DelayLine(3, newest=5)
        with pytest.raises(InvariantViolation, match="sum to 95"):
            _check_invariants(3, state, 100, line, DelayLine(2))

    def test_delay_line_drift_is_reported(self):
        state = CompartmentState(susceptible=95, infected=5)
        line = DelayLine(3, newest=4)
        with pytest.raises(InvariantViolation, match="delay line"):
            _check_invariants(3, state, 100, line, DelayLine(2))
