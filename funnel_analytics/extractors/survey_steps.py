"""Per-question progress through the values questionnaire.

Display order is not derived from the data: the canonical question order is
injected through ``ExtractionContext.step_order``. Steps missing from it sort
after the known ones, in the order they were first seen.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Sequence, Set

from funnel_analytics.domain.events import EventKind, EventRecord, kind_set
from funnel_analytics.domain.models import MetricBlock
from funnel_analytics.domain.rates import percentage

from .base import ExtractionContext, Extractor, funnel_stages

STEP_KINDS = kind_set(EventKind.SURVEY_STEP_START, EventKind.SURVEY_STEP_COMPLETE)


@dataclass
class StepProgress:
    id: str
    position: int
    started: int
    completed: int

    @property
    def label(self) -> str:
        words = (w[:1].upper() + w[1:] for w in self.id.split("_"))
        return f"{self.position}. {' '.join(words)}"


def order_steps(step_ids: Sequence[str], canonical: Sequence[str]) -> List[str]:
    index = {step_id: i for i, step_id in enumerate(canonical)}
    known = sorted((s for s in step_ids if s in index), key=index.__getitem__)
    unknown = [s for s in step_ids if s not in index]
    return known + unknown


def step_progress(
    events: List[EventRecord], context: ExtractionContext
) -> List[StepProgress]:
    started: Dict[str, Set[str]] = defaultdict(set)
    completed: Dict[str, Set[str]] = defaultdict(set)
    encountered: List[str] = []
    for event in events:
        if event.kind not in STEP_KINDS:
            continue
        step_id = event.prop("step_id")
        if not step_id:
            continue
        if step_id not in started:
            encountered.append(step_id)
        # completing a step means it was started
        started[step_id].add(event.user_id)
        if event.kind == EventKind.SURVEY_STEP_COMPLETE:
            completed[step_id].add(event.user_id)

    if context.include_empty_steps:
        encountered = list(context.step_order) + [
            s for s in encountered if s not in context.step_order
        ]

    return [
        StepProgress(
            id=step_id,
            position=position,
            started=len(started.get(step_id, ())),
            completed=len(completed.get(step_id, ())),
        )
        for position, step_id in enumerate(
            order_steps(encountered, context.step_order), start=1
        )
    ]


class SurveyStepsExtractor(Extractor):
    name = "surveySteps"
    kinds = STEP_KINDS | kind_set(EventKind.SURVEY_START, EventKind.SURVEY_COMPLETE)

    def extract(
        self, events: List[EventRecord], context: ExtractionContext
    ) -> MetricBlock:
        steps = [
            {
                "id": step.id,
                "label": step.label,
                "position": step.position,
                "started": step.started,
                "completed": step.completed,
                "completionRate": percentage(step.completed, step.started),
            }
            for step in step_progress(events, context)
        ]
        return MetricBlock(
            name=self.name,
            data={"steps": steps, "totalStarts": len(funnel_stages(events).started)},
        )


class DropoffAnalysisExtractor(Extractor):
    """Users lost between consecutive steps.

    The last step is compared against its own completions.
    """

    name = "dropoffAnalysis"
    kinds = STEP_KINDS

    def extract(
        self, events: List[EventRecord], context: ExtractionContext
    ) -> MetricBlock:
        steps = step_progress(events, context)
        rows = []
        for i, step in enumerate(steps):
            next_started = steps[i + 1].started if i + 1 < len(steps) else step.completed
            dropoff = max(0, step.started - next_started)
            rows.append(
                {
                    "id": step.id,
                    "label": step.label,
                    "position": step.position,
                    "started": step.started,
                    "nextStarted": next_started,
                    "dropoff": dropoff,
                    "dropoffRate": percentage(dropoff, step.started),
                }
            )
        return MetricBlock(name=self.name, data={"steps": rows})
