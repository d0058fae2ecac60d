from datetime import timedelta

import pytest

from funnel_analytics.core.config import DEFAULT_SURVEY_STEP_ORDER
from funnel_analytics.domain.time_range import TimeRange, resolve
from funnel_analytics.extractors import ExtractionContext
from tests.utils.events import BASE_TIME


@pytest.fixture
def selector():
    return TimeRange.custom(BASE_TIME - timedelta(days=1), BASE_TIME + timedelta(days=1))


@pytest.fixture
def window(selector):
    return resolve(selector)


@pytest.fixture
def context():
    return ExtractionContext(step_order=tuple(DEFAULT_SURVEY_STEP_ORDER))
