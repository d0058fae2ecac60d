"""Metric extractors and the name -> block registry."""

from typing import Dict, FrozenSet, Iterable, Tuple

from funnel_analytics.core.errors import UnknownMetricError
from funnel_analytics.domain.models import MetricName

from .base import ExtractionContext, Extractor
from .cohorts import ABTestComparisonExtractor, AnonymousUsersExtractor
from .dialog import DialogClosesExtractor
from .funnel import SurveyFunnelExtractor
from .recommendations import RecommendationsExtractor
from .signups import SignupsExtractor
from .survey_steps import DropoffAnalysisExtractor, SurveyStepsExtractor
from .survey_types import SurveyTypesExtractor


def default_extractors() -> Dict[str, Extractor]:
    extractors = [
        SurveyFunnelExtractor(),
        SurveyTypesExtractor(),
        SignupsExtractor(),
        RecommendationsExtractor(),
        SurveyStepsExtractor(),
        DropoffAnalysisExtractor(),
        AnonymousUsersExtractor(),
        ABTestComparisonExtractor(),
        DialogClosesExtractor(),
    ]
    return {extractor.name: extractor for extractor in extractors}


# Refresh targets that read from a block computed under another name
METRIC_BLOCKS: Dict[MetricName, str] = {
    MetricName.VISITORS: "surveyFunnel",
    MetricName.SURVEY_STARTED: "surveyFunnel",
    MetricName.SURVEY_COMPLETED: "surveyFunnel",
    MetricName.SURVEY_FUNNEL: "surveyFunnel",
    MetricName.SIGNUPS: "signups",
    MetricName.SIGNUP_METHODS: "signups",
    MetricName.UNIQUE_SIGNUPS: "signups",
    MetricName.SURVEY_TYPES: "surveyTypes",
    MetricName.RECOMMENDATIONS: "recommendations",
    MetricName.SURVEY_STEPS: "surveySteps",
    MetricName.DROPOFF_ANALYSIS: "dropoffAnalysis",
    MetricName.ANONYMOUS_USERS: "anonymousUsers",
    MetricName.AB_TEST_COMPARISON: "abTestComparison",
    MetricName.DIALOG_CLOSES: "dialogCloses",
}


def parse_metric(name: str | MetricName) -> MetricName:
    try:
        return MetricName(name)
    except ValueError:
        raise UnknownMetricError(str(name)) from None


def blocks_for(metrics: Iterable[str | MetricName] | None) -> Tuple[str, ...] | None:
    """Block names to compute, or None for a full refresh."""
    if metrics is None:
        return None
    blocks = []
    for metric in metrics:
        name = parse_metric(metric)
        if name is MetricName.ALL:
            return None
        block = METRIC_BLOCKS[name]
        if block not in blocks:
            blocks.append(block)
    return tuple(sorted(blocks)) or None


def kinds_for(extractors: Iterable[Extractor]) -> FrozenSet[str]:
    kinds: FrozenSet[str] = frozenset()
    for extractor in extractors:
        kinds |= extractor.kinds
    return kinds


__all__ = [
    "ExtractionContext",
    "Extractor",
    "METRIC_BLOCKS",
    "blocks_for",
    "default_extractors",
    "kinds_for",
    "parse_metric",
]
