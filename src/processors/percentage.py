"""変化率ヘルパー"""


def calculate_percentage(change_value: float, base_value: float) -> float:
    """
    変化後の値を基準とした変化率の絶対値（%）を返します

    Args:
        change_value: 変化後の値（0不可）
        base_value: 基準値

    Raises:
        ZeroDivisionError: change_value が0の場合
    """
    diff = change_value - base_value
    change = (diff / change_value) * 100
    return abs(change)
