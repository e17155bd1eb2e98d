"""
IntervalScheduler - 一定間隔でコールバックを実行する汎用ティックエンジン

asyncioイベントループのタイマーを使用して、指定間隔（ミリ秒）で
ティックコールバックを繰り返し呼び出します。明示的な停止、最大ティック数、
または各ティック後に評価される停止条件で終了します。
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import structlog
from pydantic import ValidationError

from src.common.config import get_config
from src.common.error_handling import (
    ConfigurationError,
    ErrorHandler,
    StateError,
    validation_to_configuration_error,
)
from src.common.models import SchedulerEvent, SchedulerOptions, SchedulerState

logger = structlog.get_logger(__name__)


class IntervalScheduler:
    """
    一定間隔のティックを発生させるスケジューラ

    状態遷移: IDLE → RUNNING → STOPPED（終端。再開には新しいインスタンスが必要）

    各ティックではカウンタを進めてからティックコールバックを呼び出し、
    その後 (a) 最大ティック数、(b) 停止条件 の順に終了判定を行います。

    Example:
        >>> scheduler = IntervalScheduler(speed=100, max_ticks=5, on_tick=print)
        >>> scheduler.start()          # ティック0は同期的に発火
        >>> await scheduler.wait()     # 終了まで待機

    Attributes:
        name: スケジューラ名
        speed: ティック間隔（ミリ秒）
        tick: 発火済みのティック数
        state: 現在のライフサイクル状態
        max_ticks: 最大ティック数（Noneで無制限）

    Note:
        - タイマーハンドルは start() から終了まで本インスタンスが専有し、
          ティックコールバックが例外を送出した場合も含めて必ず解放されます
        - コールバックの登録は start() より前に行う必要があります
    """

    def __init__(
        self,
        speed: float | None = None,
        name: str = "Timer",
        max_ticks: int | None = None,
        stop_condition: Callable[[], bool] | None = None,
        on_tick: Callable[[int], Any] | None = None,
        on_complete: Callable[[], Any] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        初期化

        Args:
            speed: ティック間隔（ミリ秒、デフォルト: 設定値 default_speed_ms）
            name: スケジューラ名
            max_ticks: 最大ティック数
            stop_condition: 各ティック後に評価される停止条件
            on_tick: ティック時コールバック（ティック番号を受け取る）
            on_complete: 完了時コールバック（1回の実行につき1回）
            loop: 使用するイベントループ（省略時は start() 時点の実行中ループ）

        Raises:
            ConfigurationError: 無効なパラメータが指定された場合
        """
        if speed is None:
            speed = get_config().default_speed_ms

        try:
            options = SchedulerOptions(
                name=name,
                speed=speed,
                max_ticks=max_ticks,
                stop_condition=stop_condition,
                on_tick=on_tick,
                on_complete=on_complete,
            )
        except ValidationError as e:
            raise validation_to_configuration_error(e, name or "Timer") from e

        self.name = options.name
        self.speed = options.speed
        self.max_ticks = options.max_ticks
        self.tick = 0
        self.state = SchedulerState.IDLE

        self._on_tick = options.on_tick
        self._on_complete = options.on_complete
        self._stop_condition = options.stop_condition

        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._done: asyncio.Future | None = None
        self._next_deadline = 0.0
        self._error_handler = ErrorHandler(logger=logging.getLogger(__name__))

    def __repr__(self) -> str:
        return (
            f"IntervalScheduler(name={self.name!r}, speed={self.speed}, "
            f"tick={self.tick}, state={self.state.value})"
        )

    async def __aenter__(self) -> IntervalScheduler:
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()

    @property
    def is_running(self) -> bool:
        return self.state is SchedulerState.RUNNING

    # ------------------------------------------------------------------
    # コールバック登録
    # ------------------------------------------------------------------

    def add_event_listener(self, event: SchedulerEvent | str, callback: Callable) -> None:
        """
        コールバックを登録します（既存の同種コールバックは置き換え）

        Args:
            event: "tick"（別名 "update"）、"complete"、"stopcondition"
            callback: 登録するコールバック

        Raises:
            ConfigurationError: 不明なイベント、または呼び出し不能なコールバックの場合
            StateError: start() 呼び出し後の場合
        """
        if not callable(callback):
            raise ConfigurationError(
                f"{self.name} addEventListener expects an event and callback parameter"
            )
        if self.state is not SchedulerState.IDLE:
            raise StateError(
                f"{self.name} cannot add event listener after the timer has started",
                details={"event": str(event), "state": self.state.value},
            )
        try:
            kind = SchedulerEvent(event)
        except ValueError:
            raise ConfigurationError(f"{self.name} unknown event '{event}'") from None

        if kind in (SchedulerEvent.TICK, SchedulerEvent.UPDATE):
            self._on_tick = callback
        elif kind is SchedulerEvent.COMPLETE:
            self._on_complete = callback
        else:
            self._stop_condition = callback

    # ------------------------------------------------------------------
    # 実行制御
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        スケジューラを開始します

        ティック0を同期的に発火し、その後 speed ミリ秒ごとに次のティックを
        予約します。実行中の場合は何もしません。

        Raises:
            StateError: 停止済みの場合、または実行中のイベントループがない場合
        """
        if self.state is SchedulerState.RUNNING:
            return
        if self.state is SchedulerState.STOPPED:
            raise StateError(
                f"{self.name} a stopped scheduler cannot be restarted",
                details={"tick": self.tick},
            )

        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                raise StateError(
                    f"{self.name} start() requires a running event loop"
                ) from None

        self.state = SchedulerState.RUNNING
        self._done = self._loop.create_future()
        self._next_deadline = self._loop.time()
        logger.info(
            "Scheduler started", scheduler=self.name, speed_ms=self.speed, max_ticks=self.max_ticks
        )

        self._run_tick(deferred=False)

    def stop(self) -> None:
        """
        タイマーを解除して停止します

        実行中であれば完了コールバックを1回だけ発火します。
        停止済みの場合は何もしません。未開始の場合は発火せずに STOPPED へ遷移します。
        """
        if self.state is SchedulerState.STOPPED:
            return

        was_running = self.state is SchedulerState.RUNNING
        self._release_timer()
        self.state = SchedulerState.STOPPED
        if not was_running:
            return

        if self._done is not None and not self._done.done():
            self._done.set_result(self.tick)
        logger.info("Scheduler stopped", scheduler=self.name, ticks=self.tick)

        if self._on_complete is not None:
            self._on_complete()

    async def wait(self) -> int:
        """
        現在の実行が終了するまで待機します

        Returns:
            終了時点のティック数

        Raises:
            StateError: start() が呼ばれていない場合
            Exception: ティックコールバックが送出した例外

        Note:
            失敗した実行の例外は wait() から送出されますが、wait() しない場合も
            ErrorHandler によるログ記録のみで未取得警告は出ません
        """
        if self._done is None:
            raise StateError(f"{self.name} has not been started")
        return await asyncio.shield(self._done)

    # ------------------------------------------------------------------
    # 内部処理
    # ------------------------------------------------------------------

    def _run_tick(self, deferred: bool = True) -> None:
        self._handle = None
        index = self.tick

        try:
            with self._error_handler.handle_errors(f"{self.name}.tick"):
                self.tick += 1
                if self._on_tick is not None:
                    self._on_tick(index)

                if self.is_running and self.max_ticks is not None and self.tick >= self.max_ticks:
                    self.stop()
                if self.is_running and self._stop_condition is not None and self._stop_condition():
                    self.stop()
        except Exception as e:
            delivered = self._fail(e)
            if not deferred or not delivered:
                raise
            return

        if self.is_running:
            self._arm()

    def _arm(self) -> None:
        self._next_deadline += self.speed / 1000.0
        now = self._loop.time()
        # コールバックが周期を超えて遅延した場合は現在時刻から再計算
        if self._next_deadline < now:
            self._next_deadline = now
        self._handle = self._loop.call_at(self._next_deadline, self._run_tick)

    def _release_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fail(self, error: Exception) -> bool:
        """失敗した実行を終了し、wait() へ例外を引き渡せたかを返します"""
        self._release_timer()
        self.state = SchedulerState.STOPPED
        logger.error("Scheduler tick failed", scheduler=self.name, tick=self.tick, error=str(error))

        if self._done is None or self._done.done():
            return False
        self._done.set_exception(error)
        # ErrorHandler で記録済み。wait() されない場合も未取得警告を出さない
        self._done.exception()
        return True
