"""
データ供給コンテナモジュール

配列・CSVファイル・派生系列（移動平均）を供給元とするコンテナを提供します。
"""

from .array_provider import ArrayContainer
from .csv_provider import CsvContainer
from .moving_average import MovingAverage, RollingAggregate

__all__ = [
    "ArrayContainer",
    "CsvContainer",
    "RollingAggregate",
    "MovingAverage",
]
