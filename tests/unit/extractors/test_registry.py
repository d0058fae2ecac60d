import pytest

from funnel_analytics.core.errors import UnknownMetricError
from funnel_analytics.domain.models import MetricName
from funnel_analytics.extractors import blocks_for, default_extractors, kinds_for


def test_default_extractors_cover_every_block():
    assert set(default_extractors()) == {
        "surveyFunnel",
        "surveyTypes",
        "signups",
        "recommendations",
        "surveySteps",
        "dropoffAnalysis",
        "anonymousUsers",
        "abTestComparison",
        "dialogCloses",
    }


def test_blocks_for_maps_aliases():
    assert blocks_for(["visitors", "surveyStarted"]) == ("surveyFunnel",)
    assert blocks_for([MetricName.SIGNUP_METHODS, "uniqueSignups"]) == ("signups",)


def test_blocks_for_full_refresh():
    assert blocks_for(None) is None
    assert blocks_for(["surveySteps", "all"]) is None


def test_unknown_metric():
    with pytest.raises(UnknownMetricError):
        blocks_for(["bogus"])


def test_kinds_for_union():
    extractors = default_extractors()
    kinds = kinds_for([extractors["signups"], extractors["dialogCloses"]])
    assert {"signup", "signup_click", "dialog_close", "page_visit"} <= kinds
    assert "survey_step_start" not in kinds
