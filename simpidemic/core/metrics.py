"""Summary metrics and the markdown simulation report."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from simpidemic.core.compartments import ResultSet
from simpidemic.core.model_spec import EpidemicSummary


def summarize(result: ResultSet, initial_population: int) -> EpidemicSummary:
    """Compute headline numbers from a Result Set."""
    if result.num_days == 0:
        raise ValueError("Cannot summarize an empty result set")
    arrays = result.as_arrays()
    infected = arrays["infected"]
    peak_idx = int(np.argmax(infected))

    return EpidemicSummary(
        num_days=result.num_days,
        population=initial_population,
        peak_day=peak_idx,
        peak_infected=int(infected[peak_idx]),
        peak_in_treatment=int(np.max(arrays["in_treatment"])),
        total_dead=int(arrays["dead"][-1]),
        final_recovered=int(arrays["recovered"][-1]),
        attack_rate=float(1.0 - arrays["susceptible"][-1] / initial_population),
        mortality_rate=float(arrays["dead"][-1] / initial_population),
    )


def write_report(summary: EpidemicSummary, output_dir: Path, title: str = "Simulation") -> Path:
    """Write a simulation_report.md to the output directory."""
    lines = [
        f"# Simulation Report: {title}",
        f"**Population:** {summary.population:,}",
        f"**Days simulated:** {summary.num_days}",
        "",
        "## Results",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Peak day | {summary.peak_day} |",
        f"| Peak infected | {summary.peak_infected:,} |",
        f"| Peak in treatment | {summary.peak_in_treatment:,} |",
        f"| Total dead | {summary.total_dead:,} |",
        f"| Final recovered | {summary.final_recovered:,} |",
        f"| Attack rate | {summary.attack_rate * 100:.2f}% |",
        f"| Mortality | {summary.mortality_rate * 100:.3f}% |",
    ]

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / "simulation_report.md"
    path.write_text("\n".join(lines) + "\n")
    return path
