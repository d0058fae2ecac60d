from collections import defaultdict
from typing import Dict, List, Set

from funnel_analytics.domain.events import EventKind, EventRecord, kind_set
from funnel_analytics.domain.models import MetricBlock

from .base import ExtractionContext, Extractor

SURVEY_TYPES = ("text", "image")


class SurveyTypesExtractor(Extractor):
    """Distinct survey starters per questionnaire presentation type."""

    name = "surveyTypes"
    kinds = kind_set(EventKind.SURVEY_START)

    def extract(
        self, events: List[EventRecord], context: ExtractionContext
    ) -> MetricBlock:
        starters: Dict[str, Set[str]] = defaultdict(set)
        for event in events:
            survey_type = str(event.prop("survey_type") or "").lower()
            if survey_type in SURVEY_TYPES:
                starters[survey_type].add(event.user_id)

        counts = {survey_type: len(starters[survey_type]) for survey_type in SURVEY_TYPES}
        return MetricBlock(
            name=self.name,
            data={**counts, "total": sum(counts.values())},
        )
