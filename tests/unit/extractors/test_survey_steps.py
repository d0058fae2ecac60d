from dataclasses import replace

from funnel_analytics.domain.events import EventKind
from funnel_analytics.extractors.survey_steps import (
    DropoffAnalysisExtractor,
    SurveyStepsExtractor,
    order_steps,
)
from tests.utils.events import create_test_event


def _step(kind, user, minutes, step_id):
    return create_test_event(kind, user, minutes, step_id=step_id)


def _events():
    events = []
    # self_growth arrives first but sorts after work_values
    for i, user in enumerate(["a", "b"]):
        events.append(_step(EventKind.SURVEY_STEP_START, user, i, "self_growth"))
    events.append(_step(EventKind.SURVEY_STEP_COMPLETE, "a", 5, "self_growth"))
    for i, user in enumerate(["a", "b", "c", "d"]):
        events.append(_step(EventKind.SURVEY_STEP_START, user, 10 + i, "work_values"))
    for i, user in enumerate(["a", "b", "c"]):
        events.append(_step(EventKind.SURVEY_STEP_COMPLETE, user, 20 + i, "work_values"))
    return events


def test_steps_follow_canonical_order(window, context):
    block = SurveyStepsExtractor()(_events(), window, context)
    steps = block["steps"]

    assert [s["id"] for s in steps] == ["work_values", "self_growth"]
    assert [s["label"] for s in steps] == ["1. Work Values", "2. Self Growth"]
    assert steps[0]["started"] == 4
    assert steps[0]["completed"] == 3
    assert steps[0]["completionRate"].formatted == "75%"
    assert steps[1]["completionRate"].formatted == "50%"


def test_unknown_steps_sort_last(window, context):
    events = _events() + [_step(EventKind.SURVEY_STEP_START, "a", 0, "bonus_round")]
    steps = SurveyStepsExtractor()(events, window, context)["steps"]
    assert steps[-1]["id"] == "bonus_round"
    assert steps[-1]["label"] == "3. Bonus Round"


def test_include_empty_steps(window, context):
    context = replace(context, include_empty_steps=True)
    steps = SurveyStepsExtractor()(_events(), window, context)["steps"]
    assert len(steps) == len(context.step_order)
    assert steps[1]["id"] == "corporate_culture"
    assert steps[1]["started"] == 0
    assert steps[1]["completionRate"].formatted == "0%"


def test_dropoff_between_consecutive_steps(window, context):
    rows = DropoffAnalysisExtractor()(_events(), window, context)["steps"]

    assert rows[0]["nextStarted"] == 2
    assert rows[0]["dropoff"] == 2
    assert rows[0]["dropoffRate"].formatted == "50%"
    # last step compares against its own completions
    assert rows[1]["nextStarted"] == 1
    assert rows[1]["dropoff"] == 1


def test_order_steps():
    assert order_steps(["c", "x", "a"], ["a", "b", "c"]) == ["a", "c", "x"]
