"""
IntervalSchedulerクラスのユニットテスト

ティックの発火順序、終了条件、完了コールバックの一回性、
状態遷移とタイマー解放を検証します。
"""

import asyncio
import gc
from unittest.mock import MagicMock

import pytest

from src.common.config import ConfigManager
from src.common.error_handling import ConfigurationError, StateError
from src.common.models import SchedulerState
from src.pipeline.scheduler import IntervalScheduler


class TestIntervalSchedulerInitialization:
    """初期化テスト"""

    def test_default_speed_from_config(self):
        scheduler = IntervalScheduler()
        assert scheduler.speed == 1000.0
        assert scheduler.name == "Timer"
        assert scheduler.state is SchedulerState.IDLE
        assert scheduler.tick == 0

    def test_default_speed_follows_config_update(self):
        ConfigManager().update_config(default_speed_ms=250.0)
        assert IntervalScheduler().speed == 250.0

    @pytest.mark.parametrize("speed", [0, -5, "100", True])
    def test_invalid_speed_raises(self, speed):
        with pytest.raises(ConfigurationError, match="speed"):
            IntervalScheduler(speed=speed)

    @pytest.mark.parametrize("max_ticks", [0, -1, 1.5])
    def test_invalid_max_ticks_raises(self, max_ticks):
        with pytest.raises(ConfigurationError):
            IntervalScheduler(speed=10, max_ticks=max_ticks)

    def test_start_without_running_loop_raises(self):
        scheduler = IntervalScheduler(speed=10)
        with pytest.raises(StateError, match="event loop"):
            scheduler.start()


class TestIntervalSchedulerListeners:
    """コールバック登録のテスト"""

    def test_unknown_event_raises(self):
        scheduler = IntervalScheduler(speed=10)
        with pytest.raises(ConfigurationError):
            scheduler.add_event_listener("load", MagicMock())

    def test_non_callable_raises(self):
        scheduler = IntervalScheduler(speed=10)
        with pytest.raises(ConfigurationError):
            scheduler.add_event_listener("tick", None)

    @pytest.mark.asyncio
    async def test_update_is_alias_of_tick(self):
        on_tick = MagicMock()
        scheduler = IntervalScheduler(speed=1, max_ticks=2)
        scheduler.add_event_listener("update", on_tick)

        scheduler.start()
        await scheduler.wait()

        assert [c.args[0] for c in on_tick.call_args_list] == [0, 1]

    @pytest.mark.asyncio
    async def test_register_after_start_raises(self):
        scheduler = IntervalScheduler(speed=1000)
        scheduler.start()
        try:
            with pytest.raises(StateError):
                scheduler.add_event_listener("complete", MagicMock())
        finally:
            scheduler.stop()


class TestIntervalSchedulerExecution:
    """実行と終了条件のテスト"""

    @pytest.mark.asyncio
    async def test_first_tick_fires_synchronously(self):
        ticks = []
        scheduler = IntervalScheduler(speed=1000, on_tick=ticks.append)

        scheduler.start()

        assert ticks == [0]
        assert scheduler.tick == 1
        assert scheduler.is_running
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_max_ticks(self):
        ticks = []
        on_complete = MagicMock()
        scheduler = IntervalScheduler(
            speed=1, max_ticks=3, on_tick=ticks.append, on_complete=on_complete
        )

        scheduler.start()
        result = await scheduler.wait()

        assert result == 3
        assert ticks == [0, 1, 2]
        assert scheduler.state is SchedulerState.STOPPED
        on_complete.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_stop_condition_checked_after_each_tick(self):
        ticks = []
        scheduler = IntervalScheduler(speed=1, on_tick=ticks.append)
        scheduler.add_event_listener("stopcondition", lambda: scheduler.tick >= 2)

        scheduler.start()
        await scheduler.wait()

        assert ticks == [0, 1]

    @pytest.mark.asyncio
    async def test_max_ticks_takes_precedence_over_stop_condition(self):
        stop_condition = MagicMock(return_value=False)
        scheduler = IntervalScheduler(speed=1, max_ticks=1, stop_condition=stop_condition)

        scheduler.start()
        await scheduler.wait()

        stop_condition.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_from_tick_callback(self):
        on_complete = MagicMock()
        scheduler = IntervalScheduler(speed=1, on_complete=on_complete)

        def on_tick(index):
            if index == 1:
                scheduler.stop()

        scheduler.add_event_listener("tick", on_tick)
        scheduler.start()
        await scheduler.wait()

        assert scheduler.tick == 2
        on_complete.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent_and_completes_once(self):
        on_complete = MagicMock()
        scheduler = IntervalScheduler(speed=1000, on_complete=on_complete)

        scheduler.start()
        scheduler.stop()
        scheduler.stop()

        on_complete.assert_called_once_with()
        assert scheduler._handle is None

    @pytest.mark.asyncio
    async def test_no_tick_after_stop(self):
        ticks = []
        scheduler = IntervalScheduler(speed=1, on_tick=ticks.append)

        scheduler.start()
        scheduler.stop()
        await asyncio.sleep(0.02)

        assert ticks == [0]

    def test_stop_before_start_does_not_complete(self):
        on_complete = MagicMock()
        scheduler = IntervalScheduler(speed=10, on_complete=on_complete)

        scheduler.stop()

        assert scheduler.state is SchedulerState.STOPPED
        on_complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_stopped_scheduler_cannot_restart(self):
        scheduler = IntervalScheduler(speed=1, max_ticks=1)
        scheduler.start()
        await scheduler.wait()

        with pytest.raises(StateError, match="restarted"):
            scheduler.start()

    @pytest.mark.asyncio
    async def test_start_while_running_is_noop(self):
        ticks = []
        scheduler = IntervalScheduler(speed=1000, on_tick=ticks.append)

        scheduler.start()
        scheduler.start()

        assert ticks == [0]
        scheduler.stop()

    @pytest.mark.asyncio
    async def test_wait_before_start_raises(self):
        with pytest.raises(StateError):
            await IntervalScheduler(speed=10).wait()

    @pytest.mark.asyncio
    async def test_async_context_manager_stops_on_exit(self):
        on_complete = MagicMock()
        async with IntervalScheduler(speed=1000, on_complete=on_complete) as scheduler:
            assert scheduler.is_running

        assert scheduler.state is SchedulerState.STOPPED
        on_complete.assert_called_once_with()


class TestIntervalSchedulerFailures:
    """ティックコールバックの例外処理テスト"""

    @pytest.mark.asyncio
    async def test_first_tick_error_raises_from_start(self):
        on_complete = MagicMock()

        def boom(index):
            raise ValueError("bad tick")

        scheduler = IntervalScheduler(speed=1, on_tick=boom, on_complete=on_complete)

        with pytest.raises(ValueError, match="bad tick"):
            scheduler.start()

        assert scheduler.state is SchedulerState.STOPPED
        assert scheduler._handle is None
        on_complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_deferred_tick_error_surfaces_from_wait(self):
        on_complete = MagicMock()

        def on_tick(index):
            if index == 2:
                raise RuntimeError("tick 2 failed")

        scheduler = IntervalScheduler(speed=1, on_tick=on_tick, on_complete=on_complete)
        scheduler.start()

        with pytest.raises(RuntimeError, match="tick 2 failed"):
            await scheduler.wait()

        assert scheduler.tick == 3
        assert scheduler.state is SchedulerState.STOPPED
        assert scheduler._handle is None
        on_complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_unawaited_failure_is_not_reported_as_unretrieved(self):
        """wait() されない失敗でもイベントループへ未取得例外が報告されない"""
        loop = asyncio.get_running_loop()
        reported = []
        loop.set_exception_handler(lambda _loop, context: reported.append(context))

        def on_tick(index):
            if index == 1:
                raise RuntimeError("tick 1 failed")

        scheduler = IntervalScheduler(speed=1, on_tick=on_tick)
        try:
            scheduler.start()
            while scheduler.is_running:
                await asyncio.sleep(0.005)

            assert scheduler.state is SchedulerState.STOPPED
            del scheduler
            gc.collect()

            assert reported == []
        finally:
            loop.set_exception_handler(None)
