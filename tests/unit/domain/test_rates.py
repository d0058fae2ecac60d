import pytest

from funnel_analytics.domain.rates import Rate, average, difference, percentage


@pytest.mark.parametrize(
    "num,den,expected",
    [
        (40, 100, "40%"),
        (25, 40, "63%"),
        (25, 100, "25%"),
        (1, 3, "33%"),
        (2, 3, "67%"),
        (1, 200, "1%"),
        (1, 1000, "0%"),
        (0, 0, "0%"),
        (5, 0, "0%"),
    ],
)
def test_percentage_formatting(num, den, expected):
    assert percentage(num, den).formatted == expected


def test_percentage_keeps_unrounded_value():
    rate = percentage(25, 40)
    assert rate.value == pytest.approx(62.5)


def test_percentage_is_clamped():
    assert percentage(150, 100).value == 100.0
    assert percentage(150, 100).formatted == "100%"
    assert percentage(-5, 100).value == 0.0


def test_difference_can_be_negative():
    diff = difference(percentage(20, 100), percentage(50, 100))
    assert diff.value == pytest.approx(-30.0)
    assert diff.formatted == "-30%"


def test_zero_rate():
    assert Rate.zero() == Rate(value=0.0, formatted="0%")


def test_average():
    assert average(7, 2) == 3.5
    assert average(10, 3) == 3.33
    assert average(5, 0) == 0


@pytest.mark.parametrize(
    "num,den,expected",
    [(29, 200, "15%"), (1, 8, "13%"), (5, 8, "63%"), (3, 40, "8%")],
)
def test_half_way_percentages_round_up(num, den, expected):
    rate = percentage(num, den)
    assert rate.formatted == expected
    assert rate.value == pytest.approx(num / den * 100)
