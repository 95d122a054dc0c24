"""Action Schedule — parameter overrides applied on a given simulation day."""

from __future__ import annotations

from pydantic import BaseModel, Field

ACTIONABLE_PARAMETERS = ("contacts_per_day", "treatment_capacity_per_100k")


class Action(BaseModel):
    day: int = Field(ge=0)
    parameter_name: str
    code: str
    value: float  # snapshot taken when the action was created
    active: bool = True

    @classmethod
    def from_parameter(cls, day: int, parameter) -> "Action":
        if not getattr(parameter, "actionable", False):
            raise ValueError(f"Parameter {parameter.name!r} cannot be scheduled")
        return cls(
            day=day,
            parameter_name=parameter.name,
            code=parameter.code,
            value=parameter.get_value(),
        )


class ActionSchedule:
    """Actions keyed by day. Order within a day is insertion order."""

    def __init__(self):
        self._by_day: dict[int, list[Action]] = {}

    def add_action(self, day: int, parameter) -> Action:
        """Schedule the parameter's current value for ``day``."""
        if day < 0:
            raise ValueError(f"Action day must be >= 0, got {day}")
        return self.add(Action.from_parameter(day, parameter))

    def add(self, action: Action) -> Action:
        self._by_day.setdefault(action.day, []).append(action)
        return action

    def remove_action(self, action: Action) -> None:
        daily = self._by_day.get(action.day, [])
        for i, existing in enumerate(daily):
            if existing is action:
                del daily[i]
                break
        else:
            raise ValueError(f"Action not scheduled: {action!r}")
        if not daily:
            del self._by_day[action.day]

    def toggle(self, action: Action, active: bool | None = None) -> None:
        action.active = (not action.active) if active is None else active

    def get_daily_actions(self, day: int) -> list[Action]:
        return self._by_day.get(day, [])

    def actions(self) -> list[Action]:
        """All actions ordered by day, for display."""
        return [a for day in sorted(self._by_day) for a in self._by_day[day]]

    def days(self) -> list[int]:
        return sorted(self._by_day)

    def clear(self, parameter_name: str | None = None) -> None:
        if parameter_name is None:
            self._by_day.clear()
            return
        for day in list(self._by_day):
            kept = [a for a in self._by_day[day] if a.parameter_name != parameter_name]
            if kept:
                self._by_day[day] = kept
            else:
                del self._by_day[day]

    def __len__(self) -> int:
        return sum(len(daily) for daily in self._by_day.values())

    def __iter__(self):
        return iter(self.actions())
