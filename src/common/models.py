"""Common data models for Series Flow.

このモジュールは、Series Flowで使用される列挙型と
構築オプションのモデルを定義します。
オプションモデルはPydanticで検証され、検証エラーは各コンポーネントで
ConfigurationErrorに変換されます。
"""

from collections.abc import Callable
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ContainerEvent(str, Enum):
    """コンテナが発火するイベント種別"""
    LOAD = "load"
    UPDATE = "update"


class SchedulerEvent(str, Enum):
    """スケジューラに登録できるコールバック種別

    UPDATE は TICK の別名です。
    """
    TICK = "tick"
    UPDATE = "update"
    COMPLETE = "complete"
    STOP_CONDITION = "stopcondition"


class SchedulerState(str, Enum):
    """スケジューラのライフサイクル状態（STOPPEDは終端）"""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class SourceKind(str, Enum):
    """コンテナのデータ供給元の種別"""
    ARRAY = "array"
    FILE = "file"
    DERIVED = "derived"


class TransformCapability(str, Enum):
    """変換処理の適用能力

    HAS_BULK_APPLY の変換はシーケンス全体を一度に変換できます。
    """
    HAS_BULK_APPLY = "has_bulk_apply"
    ELEMENTWISE_ONLY = "elementwise_only"


class SchedulerOptions(BaseModel):
    """IntervalSchedulerの構築オプション"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(default="Timer", min_length=1, description="スケジューラ名")
    speed: float = Field(..., gt=0, strict=True, description="ティック間隔（ミリ秒）")
    max_ticks: Optional[int] = Field(default=None, gt=0, strict=True, description="最大ティック数")
    stop_condition: Optional[Callable[[], bool]] = Field(default=None, description="停止条件")
    on_tick: Optional[Callable[[int], Any]] = Field(default=None, description="ティック時コールバック")
    on_complete: Optional[Callable[[], Any]] = Field(default=None, description="完了時コールバック")


class RunnerOptions(BaseModel):
    """PipelineRunnerの構築オプション（ペア以外）"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(default="Transitioner", min_length=1, description="ランナー名")
    speed: Optional[float] = Field(default=None, gt=0, strict=True, description="ティック間隔（ミリ秒）")
    on_tick: Optional[Callable[[int], Any]] = Field(default=None, description="ティック時コールバック")
    on_complete: Optional[Callable[[], Any]] = Field(default=None, description="完了時コールバック")


class RollingWindowOptions(BaseModel):
    """RollingAggregateのウィンドウ設定"""

    size: int = Field(..., ge=1, strict=True, description="ウィンドウサイズ")
    key: Optional[str] = Field(default=None, min_length=1, description="要素から値を取り出すフィールド名")


class Asset(BaseModel):
    """取引シミュレーション用の資産"""

    model_config = ConfigDict(validate_assignment=True)

    price: float = Field(..., ge=0, description="基軸資産建ての価格")
    balance: float = Field(default=0.0, ge=0, description="保有数量")
