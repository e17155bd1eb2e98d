"""
PipelineRunner（Transitioner） - コンテナと変換チェーンの実行エンジン

(コンテナ, 変換チェーン) のペア群に対して、変換を一括で即時に適用するか、
IntervalSchedulerのティックごとに1データ点ずつ全ペアを歩調を合わせて適用します。
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import ValidationError

from src.common.config import get_config
from src.common.error_handling import (
    ConfigurationError,
    StateError,
    validation_to_configuration_error,
)
from src.common.logging_utils import PerformanceLogger, StructuredLogger
from src.common.models import RunnerOptions
from src.pipeline.container import EventableContainer
from src.pipeline.scheduler import IntervalScheduler
from src.pipeline.transform import Transform, apply_chain, apply_chain_all, as_transform

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Pair:
    """コンテナ（借用参照）と変換チェーンの組"""

    container: EventableContainer
    chain: tuple[Transform, ...] = ()


class PipelineRunner:
    """
    変換チェーンの実行エンジン

    speed を省略すると即時モード、指定するとスケジュールモードで動作します。

    即時モード:
        各ペアについてコンテナの全データに変換チェーンを適用し、set_all() で
        置き換えます（コンテナごとに update が1回）。全ペア処理後に完了通知。

    スケジュールモード:
        ティック t ごとに、未完了の各ペアについて t 番目のデータ点を変換して
        set_at(t, 結果) で書き戻します。データ数が t 以下のペアは完了フラグを
        立てます（一度立った完了フラグは戻りません）。全フラグが立った時点で
        スケジューラを停止し、完了コールバックを1回だけ発火します。

    Example:
        >>> prices = ArrayContainer(data=[1, 2, 3])
        >>> runner = PipelineRunner([(prices, lambda x: x * 2)])
        >>> runner.start()
        >>> prices.get_all()
        [2, 4, 6]

    Attributes:
        name: ランナー名
        pairs: 検証済みのペア
        speed: ティック間隔（ミリ秒、即時モードではNone）
        tick: 実行済みのティック数
        done_flags: ペアごとの完了フラグ
    """

    def __init__(
        self,
        pairs: Sequence[Any],
        speed: float | None = None,
        name: str = "Transitioner",
        on_tick: Callable[[int], Any] | None = None,
        on_complete: Callable[[], Any] | None = None,
    ) -> None:
        """
        初期化

        Args:
            pairs: ペアのシーケンス。各要素は Pair、または
                (コンテナ, 変換1, 変換2, ...) / (コンテナ, [変換1, ...]) 形式
            speed: ティック間隔（ミリ秒）。省略時は即時モード
            name: ランナー名
            on_tick: ティックごとのコールバック（ティック番号を受け取る）
            on_complete: 完了時コールバック

        Raises:
            ConfigurationError: ペアまたはオプションが不正な場合
        """
        try:
            options = RunnerOptions(
                name=name, speed=speed, on_tick=on_tick, on_complete=on_complete
            )
        except ValidationError as e:
            raise validation_to_configuration_error(e, name or "Transitioner") from e

        self.name = options.name
        self.speed = options.speed
        self.pairs = self._validate_pairs(pairs)
        self.tick = 0
        self.done_flags = [False] * len(self.pairs)

        self._on_tick = options.on_tick
        self._on_complete = options.on_complete
        self._started = False
        self._completed = False
        self._scheduler: IntervalScheduler | None = None

        config = get_config()
        self._perf = PerformanceLogger(
            logger=StructuredLogger(__name__, output_format=config.log_format),
            include_memory=config.measure_memory,
        )

    def __repr__(self) -> str:
        mode = "immediate" if self.speed is None else f"scheduled({self.speed}ms)"
        return f"PipelineRunner(name={self.name!r}, pairs={len(self.pairs)}, mode={mode})"

    # ------------------------------------------------------------------
    # 検証
    # ------------------------------------------------------------------

    def _error(self, message: str, **details: Any) -> ConfigurationError:
        return ConfigurationError(f"{self.name} {message}", details={"runner": self.name, **details})

    def _validate_pairs(self, pairs: Sequence[Any]) -> list[Pair]:
        if pairs is None:
            raise self._error("map must be defined")
        if isinstance(pairs, (str, bytes)) or not isinstance(pairs, Sequence):
            raise self._error(
                "map must be a sequence of (container, transform, ...) pairs"
            )
        if len(pairs) == 0:
            raise self._error("map must contain at least one element")

        validated = []
        for position, entry in enumerate(pairs):
            if isinstance(entry, Pair):
                container, stages = entry.container, list(entry.chain)
            elif isinstance(entry, (list, tuple)) and len(entry) > 0:
                container, stages = entry[0], list(entry[1:])
                if len(stages) == 1 and isinstance(stages[0], (list, tuple)):
                    stages = list(stages[0])
            else:
                raise self._error(f"{entry!r} is not a (container, transform, ...) pair", index=position)

            if not isinstance(container, EventableContainer):
                raise self._error(f"{container!r} is not an instance of EventableContainer", index=position)

            try:
                chain = tuple(as_transform(stage) for stage in stages)
            except ConfigurationError as e:
                raise self._error(e.message, index=position) from e

            validated.append(Pair(container=container, chain=chain))
        return validated

    # ------------------------------------------------------------------
    # 実行制御
    # ------------------------------------------------------------------

    @property
    def is_complete(self) -> bool:
        return self._completed

    def start(self) -> None:
        """
        変換を開始します

        即時モードでは呼び出し中に全処理と完了通知が行われます。
        スケジュールモードでは実行中のイベントループが必要です。

        Raises:
            StateError: 既に開始されている場合
        """
        if self._started:
            raise StateError(f"{self.name} has already been started")
        self._started = True

        if self.speed is None:
            self.execute()
        else:
            self.execute_intervals()

    def stop(self) -> None:
        """スケジュール実行を中断します（完了コールバックは発火しません）"""
        if self._scheduler is not None:
            self._scheduler.stop()

    async def wait(self) -> None:
        """スケジュール実行の終了まで待機します（即時モードでは即座に戻ります）"""
        if self._scheduler is not None:
            await self._scheduler.wait()

    async def run(self) -> None:
        """start() と wait() をまとめて実行します"""
        self.start()
        await self.wait()

    def execute(self) -> None:
        """全ペアの全データ点に変換チェーンを一括適用します"""
        with self._perf.measure(f"{self.name}.execute", {"pairs": len(self.pairs)}):
            for index, pair in enumerate(self.pairs):
                data = apply_chain_all(pair.chain, pair.container.get_all())
                pair.container.set_all(data)
                self.done_flags[index] = True
        self._finish()

    def execute_intervals(self) -> None:
        """スケジューラを起動し、ティックごとに1データ点ずつ変換します"""
        self._scheduler = IntervalScheduler(
            speed=self.speed,
            name=f"{self.name}.scheduler",
            on_tick=self._execute_tick,
        )
        self._scheduler.start()

    def _execute_tick(self, tick: int) -> None:
        self.tick = tick + 1
        for index, pair in enumerate(self.pairs):
            if self.done_flags[index]:
                continue

            values = pair.container.get_all()
            if tick < len(values):
                pair.container.set_at(tick, apply_chain(pair.chain, values[tick]))
            else:
                self.done_flags[index] = True
                logger.debug(
                    "Pair exhausted", runner=self.name, container=pair.container.name, tick=tick
                )

            if all(self.done_flags):
                self._finish()
                break

        if self._on_tick is not None:
            self._on_tick(tick)

    def _finish(self) -> None:
        if self._completed:
            return
        self._completed = True

        if self._scheduler is not None:
            self._scheduler.stop()

        logger.info("Transition completed", runner=self.name, pairs=len(self.pairs), ticks=self.tick)
        if self._on_complete is not None:
            self._on_complete()
