from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .rates import Rate
from .time_range import ResolvedWindow, format_window


class MetricName(str, Enum):
    """Refresh targets accepted from callers.

    Several names are views onto the same block (``visitors`` and
    ``surveyStarted`` are both read from ``surveyFunnel``).
    """

    VISITORS = "visitors"
    SURVEY_STARTED = "surveyStarted"
    SURVEY_COMPLETED = "surveyCompleted"
    SIGNUPS = "signups"
    SURVEY_FUNNEL = "surveyFunnel"
    SURVEY_TYPES = "surveyTypes"
    SIGNUP_METHODS = "signupMethods"
    UNIQUE_SIGNUPS = "uniqueSignups"
    RECOMMENDATIONS = "recommendations"
    SURVEY_STEPS = "surveySteps"
    DROPOFF_ANALYSIS = "dropoffAnalysis"
    ANONYMOUS_USERS = "anonymousUsers"
    AB_TEST_COMPARISON = "abTestComparison"
    DIALOG_CLOSES = "dialogCloses"
    ALL = "all"


def _display(value: Any) -> Any:
    if isinstance(value, Rate):
        return value.formatted
    if isinstance(value, dict):
        return {k: _display(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_display(v) for v in value]
    return value


def _collect_rates(value: Any, path: str, out: Dict[str, float]) -> None:
    if isinstance(value, Rate):
        out[path] = value.value
    elif isinstance(value, dict):
        for k, v in value.items():
            _collect_rates(v, f"{path}.{k}" if path else k, out)
    elif isinstance(value, (list, tuple)):
        for i, v in enumerate(value):
            _collect_rates(v, f"{path}.{i}", out)


class MetricBlock(BaseModel):
    """Output of one extractor: counts and rates under stable field names."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    data: Dict[str, Any]

    def display(self) -> Dict[str, Any]:
        """Fields with every rate rendered as its percentage string."""
        return _display(self.data)

    def numeric_rates(self) -> Dict[str, float]:
        """Unrounded rate values keyed by dotted field path."""
        out: Dict[str, float] = {}
        _collect_rates(self.data, "", out)
        return out

    def __getitem__(self, field: str) -> Any:
        return self.data[field]


class Snapshot(BaseModel):
    """Point-in-time set of blocks, all computed over ``window``.

    Instances are never mutated; ``with_block`` returns a copy so a reader
    holding a reference always sees a consistent snapshot.
    """

    model_config = ConfigDict(frozen=True)

    window: ResolvedWindow
    generated_at: datetime
    blocks: Dict[str, MetricBlock] = Field(default_factory=dict)
    errors: Dict[str, str] = Field(default_factory=dict)
    sequence: int = 0
    event_count: int = 0
    # request sequence of the write that produced each block
    block_sequences: Dict[str, int] = Field(default_factory=dict)

    def block(self, name: str) -> Optional[MetricBlock]:
        return self.blocks.get(name)

    def with_block(self, block: MetricBlock, sequence: int) -> "Snapshot":
        blocks = {**self.blocks, block.name: block}
        errors = {k: v for k, v in self.errors.items() if k != block.name}
        sequences = {**self.block_sequences, block.name: sequence}
        return self.model_copy(
            update={
                "blocks": blocks,
                "errors": errors,
                "block_sequences": sequences,
            }
        )

    def as_dict(self, numeric: bool = False, tz_name: str = "Asia/Tokyo") -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "window": {
                "timeRange": self.window.selector.preset.value,
                "start": self.window.start.isoformat(),
                "end": self.window.end.isoformat(),
                "label": format_window(self.window, tz_name),
            },
            "generatedAt": self.generated_at.isoformat(),
            "stats": {name: block.display() for name, block in self.blocks.items()},
            "errors": dict(self.errors),
        }
        if numeric:
            data["rates"] = {
                name: block.numeric_rates() for name, block in self.blocks.items()
            }
        return data
