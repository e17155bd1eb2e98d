"""変化率ヘルパーのユニットテスト"""

import pytest

from src.processors.percentage import calculate_percentage


class TestCalculatePercentage:
    """calculate_percentageのテスト"""

    @pytest.mark.parametrize("change_value, base_value, expected", [
        (110, 100, 9.090909),
        (90, 100, 11.111111),
        (100, 100, 0.0),
        (-50, 50, 200.0),
    ])
    def test_absolute_change(self, change_value, base_value, expected):
        assert calculate_percentage(change_value, base_value) == pytest.approx(expected, rel=1e-6)

    def test_zero_change_value_raises(self):
        with pytest.raises(ZeroDivisionError):
            calculate_percentage(0, 100)
