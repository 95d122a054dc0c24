"""Orchestrator — owns parameters and actions, re-simulates on change, CLI entry point."""

from __future__ import annotations

import argparse
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from simpidemic.core.actions import Action, ActionSchedule
from simpidemic.core.codec import decode_state, encode_state
from simpidemic.core.compartments import ResultSet
from simpidemic.core.engine import DitheredRounding, simulate
from simpidemic.core.general import GeneralParameters
from simpidemic.core.log import log
from simpidemic.core.metrics import summarize, write_report
from simpidemic.core.model_spec import EpidemicSummary, SimulationConfig
from simpidemic.core.parameters import ParameterSet
from simpidemic.core.virus import VirusModel, make_virus_model


class EpidemicSimulator:
    """Keeps the current Result Set in step with the parameters and actions."""

    def __init__(self, config: SimulationConfig | None = None, auto_refresh: bool = True):
        self.config = config or SimulationConfig()
        self.general = GeneralParameters()
        self.virus: VirusModel = make_virus_model(self.config.kernel)
        self.schedule = ActionSchedule()
        self.parameters = ParameterSet(self.general.parameters() + self.virus.parameters())
        self.result: ResultSet | None = None
        self.run_count = 0
        self._result_listeners: list[Callable[[ResultSet], None]] = []

        with self.parameters.batch_update():
            for name, value in self.config.parameters.items():
                self.parameters[name].set_value(value)
            for spec in self.config.actions:
                self.schedule_value(spec.day, spec.parameter, spec.value, spec.active)

        if auto_refresh:
            self.parameters.subscribe(self.refresh)

    def add_result_listener(self, listener: Callable[[ResultSet], None]) -> None:
        self._result_listeners.append(listener)

    def simulate(self) -> ResultSet:
        rounding = DitheredRounding(self.config.dither_scaler, self.config.seed)
        self.result = simulate(
            self.virus,
            self.general,
            self.schedule,
            initial_population=self.config.initial_population,
            initial_infected=self.config.initial_infected,
            rounding=rounding,
        )
        self.run_count += 1
        for listener in list(self._result_listeners):
            listener(self.result)
        return self.result

    def refresh(self) -> None:
        self.simulate()

    @contextmanager
    def batch_update(self) -> Iterator["EpidemicSimulator"]:
        """Defer re-simulation until the block exits."""
        with self.parameters.batch_update():
            yield self

    def set_value(self, name: str, value: float) -> None:
        self.parameters[name].set_value(value)

    def add_action(self, day: int, name: str) -> Action:
        """Schedule the named parameter's current value for ``day``."""
        action = self.schedule.add_action(day, self.parameters[name])
        self.parameters.touch()
        return action

    def schedule_value(self, day: int, name: str, value: float, active: bool = True) -> Action:
        """Schedule an explicit value, e.g. from a config file."""
        parameter = self.parameters[name]
        if not getattr(parameter, "actionable", False):
            raise ValueError(f"Parameter {name!r} cannot be scheduled")
        action = self.schedule.add(Action(
            day=day,
            parameter_name=parameter.name,
            code=parameter.code,
            value=value,
            active=active,
        ))
        self.parameters.touch()
        return action

    def remove_action(self, action: Action) -> None:
        self.schedule.remove_action(action)
        self.parameters.touch()

    def toggle_action(self, action: Action, active: bool | None = None) -> None:
        self.schedule.toggle(action, active)
        self.parameters.touch()

    def to_query(self) -> str:
        return encode_state(self.parameters, self.schedule)

    def from_query(self, query: str) -> list[str]:
        return decode_state(query, self.parameters, self.schedule)

    def summary(self) -> EpidemicSummary:
        if self.result is None:
            self.simulate()
        return summarize(self.result, self.config.initial_population)


def _parse_action(text: str) -> tuple[int, str, float]:
    try:
        day, name, value = text.split(":")
        return int(day), name, float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Action must look like DAY:NAME:VALUE, got {text!r}"
        ) from None


def run_scenario(
    config: SimulationConfig,
    query: str | None = None,
    overrides: dict[str, float] | None = None,
    actions: list[tuple[int, str, float]] | None = None,
    output_dir: str | None = None,
) -> tuple[ResultSet, EpidemicSummary]:
    """Build a simulator from config, apply overrides, run once and report."""
    sim = EpidemicSimulator(config, auto_refresh=False)

    with sim.batch_update():
        if query:
            rejected = sim.from_query(query)
            if rejected:
                log(f"Ignored malformed fields: {', '.join(rejected)}")
        for name, value in (overrides or {}).items():
            sim.set_value(name, value)
        for day, name, value in actions or []:
            sim.schedule_value(day, name, value)

    log(f"Simulating {sim.general.num_days.get_value()} days "
         f"({sim.virus.kind} kernel, {len(sim.schedule)} actions)...")
    result = sim.simulate()
    summary = summarize(result, config.initial_population)
    log(f"Peak of {summary.peak_infected:,} infected on day {summary.peak_day}; "
         f"{summary.total_dead:,} dead")
    log(f"State: {sim.to_query()}")

    if output_dir:
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        (out / "results.json").write_text(result.model_dump_json(indent=2))
        write_report(summary, out)
        log(f"Wrote results to {out}/")

    return result, summary


def main() -> None:
    parser = argparse.ArgumentParser(
        description="SimPidemic — deterministic epidemic compartment simulator",
    )
    parser.add_argument("--config", help="Path to a SimulationConfig JSON file")
    parser.add_argument("--query", help="Encoded state string to apply")
    parser.add_argument("--kernel", choices=["peak", "table"], help="Transmission kernel")
    parser.add_argument("--days", type=int, help="Number of days to simulate")
    parser.add_argument("--contacts", type=float, help="Contacts per day")
    parser.add_argument("--capacity", type=int, help="Treatment capacity per 100K")
    parser.add_argument(
        "--action",
        action="append",
        type=_parse_action,
        default=[],
        help="Scheduled override DAY:NAME:VALUE (repeatable)",
    )
    parser.add_argument("--output-dir", help="Write results.json and simulation_report.md here")
    args = parser.parse_args()

    try:
        if args.config:
            config = SimulationConfig.model_validate_json(Path(args.config).read_text())
        else:
            config = SimulationConfig()
        if args.kernel:
            config = config.model_copy(update={"kernel": args.kernel})

        overrides = {}
        if args.days is not None:
            overrides["num_days"] = args.days
        if args.contacts is not None:
            overrides["contacts_per_day"] = args.contacts
        if args.capacity is not None:
            overrides["treatment_capacity_per_100k"] = args.capacity

        _, summary = run_scenario(config, args.query, overrides, args.action, args.output_dir)
        print(f"\nAttack rate {summary.attack_rate * 100:.1f}%, "
              f"mortality {summary.mortality_rate * 100:.3f}%")
    except Exception as e:
        print(f"\n[simpidemic] ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
