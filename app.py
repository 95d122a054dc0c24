"""SimPidemic — Main Streamlit application.

Adjust the sliders or schedule actions; the epidemic is re-simulated from day 0
on every change.
"""

import streamlit as st

from simpidemic.core.charts import build_figure
from simpidemic.core.general import treatment_capacity
from simpidemic.core.metrics import summarize
from simpidemic.core.model_spec import SimulationConfig
from simpidemic.core.orchestrator import EpidemicSimulator
from simpidemic.core.parameters import FloatParameter, IntegerParameter, ParameterArray

st.set_page_config(
    page_title="SimPidemic",
    page_icon="🦠",
    layout="wide",
)

# ---------------------------------------------------------------------------
# Styling
# ---------------------------------------------------------------------------
st.markdown("""
<style>
    .main .block-container { max-width: 1100px; padding-top: 2rem; }
    .stMetric { background: #f8f9fa; border-radius: 8px; padding: 12px; }
    div[data-testid="stExpander"] { border: 1px solid #e0e0e0; border-radius: 8px; }
</style>
""", unsafe_allow_html=True)

# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------
st.title("SimPidemic")
st.markdown("**Epidemic simulator** — a deterministic compartment model with treatment capacity and scheduled actions")
st.caption("Disclaimer: this is a toy model, not a forecast.")
st.divider()


# ---------------------------------------------------------------------------
# Simulator held across reruns
# ---------------------------------------------------------------------------
def _new_simulator(kernel: str, state: str | None) -> EpidemicSimulator:
    sim = EpidemicSimulator(SimulationConfig(kernel=kernel), auto_refresh=False)
    if state:
        rejected = sim.from_query(state)
        if rejected:
            st.warning(f"Ignored malformed fields: {', '.join(rejected)}")
    return sim


if "sim" not in st.session_state:
    st.session_state.sim = _new_simulator("peak", st.query_params.get("state"))

sim: EpidemicSimulator = st.session_state.sim


def _slider(parameter):
    key = f"param_{parameter.name}"
    label = f"{parameter.description} ({parameter.unit})" if parameter.unit else parameter.description
    if isinstance(parameter, IntegerParameter):
        return st.slider(
            label,
            min_value=int(parameter.min),
            max_value=int(parameter.max),
            value=int(parameter.get_value()),
            step=1,
            key=key,
        )
    span = parameter.max - parameter.min
    return st.slider(
        label,
        min_value=float(parameter.min),
        max_value=float(parameter.max),
        value=float(parameter.get_value()),
        step=float(f"{span / 1000:.1g}"),
        format="%.4g",
        key=key,
    )


# ---------------------------------------------------------------------------
# Sidebar — parameters
# ---------------------------------------------------------------------------
with st.sidebar:
    st.header("Model Parameters")
    kernel = st.radio(
        "Transmission kernel",
        ["peak", "table"],
        index=0 if sim.virus.kind == "peak" else 1,
        horizontal=True,
    )
    if kernel != sim.virus.kind:
        st.session_state.sim = sim = _new_simulator(kernel, sim.to_query())

    values = {}
    with sim.batch_update():
        for parameter in sim.parameters:
            if isinstance(parameter, ParameterArray):
                with st.expander("Transmission probability by day"):
                    for i in range(len(parameter)):
                        p = st.number_input(
                            f"Day {i}",
                            min_value=float(parameter.min),
                            max_value=float(parameter.max),
                            value=float(parameter.get_value(i)),
                            step=0.001,
                            format="%.4f",
                            key=f"table_{i}",
                        )
                        if p != parameter.get_value(i):
                            parameter.set_value(i, p)
            elif isinstance(parameter, (FloatParameter, IntegerParameter)):
                values[parameter.name] = _slider(parameter)
        for name, value in values.items():
            sim.set_value(name, value)

    if st.button("Reset to Defaults", use_container_width=True):
        for key in list(st.session_state.keys()):
            del st.session_state[key]
        st.query_params.clear()
        st.rerun()


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------
with st.expander("Actions (scheduled changes)", expanded=len(sim.schedule) > 0):
    actionable = [p for p in sim.parameters if getattr(p, "actionable", False)]
    cols = st.columns([2, 3, 2])
    action_day = cols[0].number_input(
        "Day", min_value=0, max_value=int(sim.general.num_days.get_value()), value=0, step=1,
    )
    action_name = cols[1].selectbox(
        "Parameter", [p.name for p in actionable],
        format_func=lambda n: sim.parameters[n].description,
    )
    cols[2].write("")
    if cols[2].button("Add action (current value)", key="add_action", use_container_width=True):
        sim.add_action(int(action_day), action_name)

    for day in sim.schedule.days():
        for i, action in enumerate(sim.schedule.get_daily_actions(day)):
            # Keyed by position; checkbox state is dropped whenever an action is removed.
            slot = f"{action.day}_{action.parameter_name}_{i}"
            cols = st.columns([1, 3, 2, 1, 1])
            cols[0].write(f"Day {action.day}")
            cols[1].write(sim.parameters[action.parameter_name].description)
            cols[2].write(f"{action.value:.4g}")
            active = cols[3].checkbox("Active", value=action.active, key=f"action_active_{slot}")
            if active != action.active:
                sim.toggle_action(action, active)
            if cols[4].button("Remove", key=f"action_remove_{slot}"):
                sim.remove_action(action)
                for key in [k for k in st.session_state.keys() if k.startswith("action_active_")]:
                    del st.session_state[key]
                st.rerun()


# ---------------------------------------------------------------------------
# Main content — chart and metrics
# ---------------------------------------------------------------------------
try:
    result = sim.simulate()
    summary = summarize(result, sim.config.initial_population)

    log_scale = st.toggle("Logarithmic scale", value=False)
    st.plotly_chart(build_figure(result, log_scale=log_scale), use_container_width=True)

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Peak Day", f"{summary.peak_day}")
    col2.metric("Peak Infected", f"{summary.peak_infected:,}")
    col3.metric("Deaths", f"{summary.total_dead:,}")
    col4.metric("Attack Rate", f"{summary.attack_rate * 100:.1f}%")

    capacity = treatment_capacity(
        sim.general.treatment_capacity_per_100k.get_value(), sim.config.initial_population
    )
    st.caption(
        f"Population {sim.config.initial_population:,}, "
        f"{sim.config.initial_infected} initially infected, "
        f"treatment capacity {capacity:,}, "
        f"infection lasts {sim.virus.infection_duration} days."
    )

    state = sim.to_query()
    st.query_params["state"] = state
    with st.expander("Share this scenario"):
        st.code(f"?state={state}", language=None)

except Exception as e:
    st.error(f"Could not run simulation: {e}")
