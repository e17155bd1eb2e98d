"""変換処理モジュール"""

from .percentage import calculate_percentage
from .trade_strategy import TradingStrategySimulator

__all__ = [
    "TradingStrategySimulator",
    "calculate_percentage",
]
