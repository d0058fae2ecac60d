from typing import List

from funnel_analytics.domain.events import EventKind, EventRecord, kind_set
from funnel_analytics.domain.models import MetricBlock
from funnel_analytics.domain.rates import average, percentage

from .base import ExtractionContext, Extractor, user_cohorts


class RecommendationsExtractor(Extractor):
    """Company interest clicks on the recommendations page."""

    name = "recommendations"
    kinds = kind_set(EventKind.PAGE_VISIT, EventKind.RECOMMENDATION_INTEREST_CLICK)

    def extract(
        self, events: List[EventRecord], context: ExtractionContext
    ) -> MetricBlock:
        page_visits = sum(
            1
            for e in events
            if e.kind == EventKind.PAGE_VISIT
            and e.prop("page") == context.recommendations_page
        )
        clicks = [e for e in events if e.kind == EventKind.RECOMMENDATION_INTEREST_CLICK]
        cohorts = user_cohorts(clicks)
        interested = len(cohorts)
        anonymous = sum(1 for is_anonymous in cohorts.values() if is_anonymous)

        return MetricBlock(
            name=self.name,
            data={
                "pageVisits": page_visits,
                "companyInterestClicks": len(clicks),
                "uniqueCompanyInterests": interested,
                "companyInterestRate": percentage(interested, page_visits),
                "averageCompaniesPerUser": average(len(clicks), interested),
                "anonymousInterests": anonymous,
                "nonAnonymousInterests": interested - anonymous,
            },
        )
