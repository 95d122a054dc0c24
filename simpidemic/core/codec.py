"""State codec — parameters and actions to and from a flat query string.

Layout: ``ver=<N>``, then ``<code>=<value>`` per parameter, then per action
``ad<code>=<day>``, ``av<code>=<value>`` and ``aa<code>=1|0``. Several
actions on one parameter repeat the keys in day order.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlencode

from simpidemic.core.actions import Action, ActionSchedule
from simpidemic.core.log import log
from simpidemic.core.parameters import ParameterArray, ParameterSet, format_significant

STATE_VERSION = 1
VERSION_KEY = "ver"
ACTION_DAY_PREFIX = "ad"
ACTION_VALUE_PREFIX = "av"
ACTION_ACTIVE_PREFIX = "aa"


def encode_state(parameters: ParameterSet, schedule: ActionSchedule | None = None) -> str:
    pairs: list[tuple[str, str]] = [(VERSION_KEY, str(STATE_VERSION))]
    for parameter in parameters:
        pairs.append((parameter.code, parameter.serialize()))
    for action in (schedule.actions() if schedule is not None else []):
        pairs.append((ACTION_DAY_PREFIX + action.code, str(action.day)))
        pairs.append((ACTION_VALUE_PREFIX + action.code, format_significant(action.value)))
        pairs.append((ACTION_ACTIVE_PREFIX + action.code, "1" if action.active else "0"))
    return urlencode(pairs, safe=",")


def decode_state(
    query: str,
    parameters: ParameterSet,
    schedule: ActionSchedule | None = None,
) -> list[str]:
    """Apply an encoded state field by field.

    Fields that fail to parse are skipped and their keys returned; the rest
    are still applied. Listeners are notified once, after the whole update.
    """
    fields = parse_qs(query.lstrip("?"), keep_blank_values=True)
    rejected: list[str] = []

    version = fields.get(VERSION_KEY, [None])[0]
    if version is not None and version != str(STATE_VERSION):
        log(f"State version {version} differs from {STATE_VERSION}; decoding anyway")

    with parameters.batch_update():
        for parameter in parameters:
            values = fields.get(parameter.code)
            if not values:
                continue
            try:
                parsed = parameter.parse(values[-1])
                if isinstance(parameter, ParameterArray):
                    parameter.set_values(parsed)
                else:
                    parameter.set_value(parsed)
            except ValueError as e:
                log(f"Skipping {parameter.code}={values[-1]!r}: {e}")
                rejected.append(parameter.code)

        if schedule is not None:
            rejected.extend(_decode_actions(fields, parameters, schedule))

    return rejected


def _decode_actions(
    fields: dict[str, list[str]],
    parameters: ParameterSet,
    schedule: ActionSchedule,
) -> list[str]:
    rejected: list[str] = []
    touched = False
    for parameter in parameters:
        if not getattr(parameter, "actionable", False):
            continue
        day_key = ACTION_DAY_PREFIX + parameter.code
        value_key = ACTION_VALUE_PREFIX + parameter.code
        active_key = ACTION_ACTIVE_PREFIX + parameter.code
        days = fields.get(day_key, [])
        values = fields.get(value_key, [])
        if not days and not values:
            continue
        if len(days) != len(values):
            log(f"Action keys for {parameter.code} are unpaired; using {min(len(days), len(values))}")
            rejected.append(day_key if len(days) > len(values) else value_key)
        actives = fields.get(active_key, [])

        schedule.clear(parameter.name)
        touched = True
        for i, (day_text, value_text) in enumerate(zip(days, values)):
            try:
                day = int(day_text)
                value = parameter.parse(value_text)
                active = actives[i] != "0" if i < len(actives) else True
                schedule.add(Action(
                    day=day,
                    parameter_name=parameter.name,
                    code=parameter.code,
                    value=value,
                    active=active,
                ))
            except ValueError as e:
                # pydantic's ValidationError is a ValueError (e.g. negative day)
                log(f"Skipping action {day_key}={day_text!r}, {value_key}={value_text!r}: {e}")
                rejected.append(day_key)
    if touched:
        parameters.touch()
    return rejected
