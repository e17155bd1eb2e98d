"""
イベント駆動パイプラインモジュール

データコンテナ、変換処理、インターバルスケジューラ、
および変換チェーンの実行エンジンを提供します。
"""

from .container import EventableContainer
from .transform import FunctionTransform, Transform, as_transform
from .scheduler import IntervalScheduler
from .runner import Pair, PipelineRunner

__all__ = [
    "EventableContainer",
    "Transform",
    "FunctionTransform",
    "as_transform",
    "IntervalScheduler",
    "Pair",
    "PipelineRunner",
]
