"""Anonymous-mode experiment: funnel metrics split by identity class."""

from typing import Any, Dict, List

from funnel_analytics.domain.events import EventRecord
from funnel_analytics.domain.models import MetricBlock
from funnel_analytics.domain.rates import difference, percentage

from .base import FUNNEL_KINDS, ExtractionContext, Extractor, funnel_stages, stage_cohorts


def cohort_breakdown(events: List[EventRecord]) -> Dict[str, Dict[str, Any]]:
    stages = funnel_stages(events)
    cohorts = stage_cohorts(events)
    total_users = len(stages.visitors)

    breakdown = {}
    for key, flag in (("anonymous", True), ("nonAnonymous", False)):
        members = {user for user in stages.visitors if cohorts[user] is flag}
        started = len(members & stages.started)
        completed = len(members & stages.completed)
        breakdown[key] = {
            "total": len(members),
            "percentage": percentage(len(members), total_users),
            "completionRate": percentage(completed, started),
            "conversionRate": percentage(completed, len(members)),
        }
    return breakdown


class AnonymousUsersExtractor(Extractor):
    name = "anonymousUsers"
    kinds = FUNNEL_KINDS

    def extract(
        self, events: List[EventRecord], context: ExtractionContext
    ) -> MetricBlock:
        return MetricBlock(name=self.name, data=cohort_breakdown(events)["anonymous"])


class ABTestComparisonExtractor(Extractor):
    """Anonymous vs. identified cohorts; ``difference`` is identified minus anonymous."""

    name = "abTestComparison"
    kinds = FUNNEL_KINDS

    def extract(
        self, events: List[EventRecord], context: ExtractionContext
    ) -> MetricBlock:
        breakdown = cohort_breakdown(events)
        anonymous = breakdown["anonymous"]
        non_anonymous = breakdown["nonAnonymous"]
        return MetricBlock(
            name=self.name,
            data={
                "anonymous": anonymous,
                "nonAnonymous": non_anonymous,
                "difference": {
                    field: difference(non_anonymous[field], anonymous[field])
                    for field in ("completionRate", "conversionRate")
                },
            },
        )
