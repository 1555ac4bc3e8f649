import pytest

from movement_analytics.trend import classify_trend


def test_classify_trend_improving_with_negative_start() -> None:
    result = classify_trend([-100, -50, 200, 300])

    assert result.first_mean == pytest.approx(-75)
    assert result.second_mean == pytest.approx(250)
    assert result.trend == "improving"


@pytest.mark.parametrize(
    "values, expected",
    [
        ([100, 100], "stable"),
        ([100, 105], "stable"),
        ([100, 111], "improving"),
        ([100, 89], "worsening"),
        ([300, 200, 100], "worsening"),
    ],
)
def test_classify_trend_thresholds(values, expected) -> None:
    assert classify_trend(values).trend == expected


def test_classify_trend_odd_length_puts_middle_in_second_half() -> None:
    result = classify_trend([10, 20, 30])

    assert result.first_mean == pytest.approx(10)
    assert result.second_mean == pytest.approx(25)


def test_classify_trend_requires_two_values() -> None:
    with pytest.raises(ValueError):
        classify_trend([42])
