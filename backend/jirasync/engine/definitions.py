"""Workflow and activity definitions plus the registry the runtime resolves them from.

A workflow is a generator function. It yields ``ActivityCall`` values and
receives each activity's JSON result back (or has an ``ActivityError`` thrown
into it). Because results are recorded in the execution history, the runtime
can rebuild a workflow's local state at any time by replaying the history
into a fresh generator, so workflow code must be deterministic: no clock
reads, no I/O, no randomness.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Generator

from pydantic import BaseModel

from jirasync.core.exceptions import UnknownWorkflowTypeError

WorkflowGenerator = Generator["ActivityCall", Any, Any]


@dataclass(frozen=True)
class ActivityOptions:
    start_to_close_timeout: float = 600.0
    maximum_attempts: int = 5
    initial_interval: float = 1.0
    backoff_coefficient: float = 2.0
    maximum_interval: float = 100.0
    non_retryable_error_types: tuple[str, ...] = ()

    def retry_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1``; ``attempt`` starts at 1."""
        delay = self.initial_interval * (self.backoff_coefficient ** max(0, attempt - 1))
        return min(delay, self.maximum_interval)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["non_retryable_error_types"] = list(self.non_retryable_error_types)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActivityOptions:
        return cls(
            start_to_close_timeout=float(data.get("start_to_close_timeout", 600.0)),
            maximum_attempts=max(1, int(data.get("maximum_attempts", 5))),
            initial_interval=float(data.get("initial_interval", 1.0)),
            backoff_coefficient=float(data.get("backoff_coefficient", 2.0)),
            maximum_interval=float(data.get("maximum_interval", 100.0)),
            non_retryable_error_types=tuple(data.get("non_retryable_error_types") or ()),
        )


@dataclass(frozen=True)
class ActivityCall:
    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    options: ActivityOptions = field(default_factory=ActivityOptions)


def execute_activity(name: str, payload: BaseModel, options: ActivityOptions) -> ActivityCall:
    return ActivityCall(name=name, payload=payload.model_dump(mode="json"), options=options)


@dataclass(frozen=True)
class ActivityDefinition:
    name: str
    fn: Callable[[Any], Any]
    input_model: type[BaseModel]

    def invoke(self, payload: dict[str, Any]) -> Any:
        result = self.fn(self.input_model.model_validate(payload))
        return to_json(result)


@dataclass(frozen=True)
class WorkflowDefinition:
    name: str
    fn: Callable[[Any], WorkflowGenerator]
    input_model: type[BaseModel]

    def start(self, args: dict[str, Any]) -> WorkflowGenerator:
        return self.fn(self.input_model.model_validate(args))


def to_json(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dt.datetime):
        return value.isoformat()
    return value


class Registry:
    def __init__(self) -> None:
        self._workflows: dict[str, WorkflowDefinition] = {}
        self._activities: dict[str, ActivityDefinition] = {}

    def register_workflow(self, definition: WorkflowDefinition) -> None:
        self._workflows[definition.name] = definition

    def register_activity(self, definition: ActivityDefinition) -> None:
        self._activities[definition.name] = definition

    def workflow(self, name: str) -> WorkflowDefinition:
        try:
            return self._workflows[name]
        except KeyError:
            raise UnknownWorkflowTypeError(name) from None

    def activity(self, name: str) -> ActivityDefinition:
        try:
            return self._activities[name]
        except KeyError:
            raise UnknownWorkflowTypeError(name) from None

    @property
    def workflow_names(self) -> list[str]:
        return sorted(self._workflows)

    @property
    def activity_names(self) -> list[str]:
        return sorted(self._activities)
