from typing import List

from funnel_analytics.domain.events import EventRecord
from funnel_analytics.domain.models import MetricBlock
from funnel_analytics.domain.rates import percentage

from .base import FUNNEL_KINDS, ExtractionContext, Extractor, funnel_stages, stage_cohorts


class SurveyFunnelExtractor(Extractor):
    """Visit -> start -> completion funnel over distinct users."""

    name = "surveyFunnel"
    kinds = FUNNEL_KINDS

    def extract(
        self, events: List[EventRecord], context: ExtractionContext
    ) -> MetricBlock:
        stages = funnel_stages(events)
        cohorts = stage_cohorts(events)
        unique_users = len(stages.visitors)
        started = len(stages.started)
        completed = len(stages.completed)
        anonymous_starts = sum(1 for user in stages.started if cohorts[user])

        return MetricBlock(
            name=self.name,
            data={
                "visits": stages.visits,
                "uniqueUsers": unique_users,
                "started": started,
                "completed": completed,
                "startRate": percentage(started, unique_users),
                "completionRate": percentage(completed, started),
                "overallConversionRate": percentage(completed, unique_users),
                "anonymousStarts": anonymous_starts,
                "nonAnonymousStarts": started - anonymous_starts,
            },
        )
