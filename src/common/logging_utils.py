"""統一的なログユーティリティモジュール

このモジュールは、Series Flow全体で使用される
構造化ログとパフォーマンス計測機能を提供します。
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Dict, Optional, Union

import psutil
import structlog


class StructuredLogger:
    """構造化ログ出力を提供するロガー

    このクラスは、JSON形式の構造化ログを出力し、
    機械的な解析を容易にします。

    Example:
        >>> logger = StructuredLogger("series_flow.runner")
        >>> logger.info("Transition completed", {"pairs": 2, "mode": "immediate"})
    """

    def __init__(
        self,
        name: str,
        level: int = logging.INFO,
        output_format: str = "json",
        include_timestamp: bool = True
    ):
        """
        初期化

        Args:
            name: ロガー名
            level: ログレベル
            output_format: 出力形式（"json" or "text"）
            include_timestamp: タイムスタンプを含めるか
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.output_format = output_format
        self.include_timestamp = include_timestamp
        self.context: Dict[str, Any] = {}

    def set_context(self, **kwargs) -> None:
        """ログコンテキストを設定"""
        self.context.update(kwargs)

    def clear_context(self) -> None:
        """ログコンテキストをクリア"""
        self.context.clear()

    def _format_message(
        self,
        message: str,
        extra_data: Optional[Dict[str, Any]] = None
    ) -> str:
        """メッセージをフォーマット

        Args:
            message: ログメッセージ
            extra_data: 追加データ

        Returns:
            str: フォーマット済みメッセージ
        """
        if self.output_format == "json":
            log_data: Dict[str, Any] = {"message": message}

            if self.include_timestamp:
                log_data["timestamp"] = datetime.now(UTC).isoformat()

            if self.context:
                log_data["context"] = self.context

            if extra_data:
                log_data["data"] = extra_data

            return json.dumps(log_data, default=str)

        if extra_data:
            return f"{message} - {json.dumps(extra_data, default=str)}"
        return message

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        """デバッグログを出力"""
        self.logger.debug(self._format_message(message, data))

    def info(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        """情報ログを出力"""
        self.logger.info(self._format_message(message, data))

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        """警告ログを出力"""
        self.logger.warning(self._format_message(message, data))

    def error(self, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        """エラーログを出力"""
        self.logger.error(self._format_message(message, data))


class JsonFormatter(logging.Formatter):
    """JSON形式のログフォーマッター"""

    def __init__(self, include_timestamp: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        """ログレコードをJSON形式にフォーマット

        Args:
            record: ログレコード

        Returns:
            str: JSON形式のログ
        """
        # すでにJSON形式の場合はそのまま返す
        if isinstance(record.msg, str) and record.msg.startswith('{'):
            return record.msg

        log_data = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage()
        }

        if self.include_timestamp:
            log_data["timestamp"] = datetime.now(UTC).isoformat()

        if hasattr(record, 'data'):
            log_data["data"] = record.data

        return json.dumps(log_data, default=str)


class PerformanceLogger:
    """パフォーマンス計測とログ出力

    このクラスは、処理時間やメモリ使用量を計測し、
    構造化ログとして出力します。

    Example:
        >>> perf = PerformanceLogger()
        >>> with perf.measure("immediate_transition"):
        ...     runner.start()
    """

    def __init__(
        self,
        logger: Optional[Union[logging.Logger, StructuredLogger]] = None,
        include_memory: bool = False,
        auto_log: bool = True
    ):
        """
        初期化

        Args:
            logger: ロガーインスタンス
            include_memory: メモリ使用量を計測するか
            auto_log: 自動的にログ出力するか
        """
        self.logger = logger or StructuredLogger(__name__)
        self.include_memory = include_memory
        self.auto_log = auto_log
        self.measurements: Dict[str, Dict[str, Any]] = {}

    @contextmanager
    def measure(
        self,
        operation_name: str,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """処理時間とメモリを計測

        Args:
            operation_name: 操作名
            metadata: メタデータ

        Yields:
            計測コンテキスト
        """
        start_time = time.perf_counter()
        start_memory = None

        if self.include_memory:
            start_memory = psutil.Process().memory_info().rss / (1024 * 1024)  # MB

        try:
            yield self
        finally:
            elapsed_time = time.perf_counter() - start_time

            measurement: Dict[str, Any] = {
                "operation": operation_name,
                "elapsed_seconds": elapsed_time,
                "timestamp": datetime.now(UTC).isoformat()
            }

            if metadata:
                measurement["metadata"] = metadata

            if start_memory is not None:
                end_memory = psutil.Process().memory_info().rss / (1024 * 1024)  # MB
                measurement["memory_start_mb"] = start_memory
                measurement["memory_end_mb"] = end_memory
                measurement["memory_delta_mb"] = end_memory - start_memory

            self.measurements[operation_name] = measurement

            if self.auto_log:
                self._log_measurement(measurement)

    def _log_measurement(self, measurement: Dict[str, Any]) -> None:
        """計測結果をログ出力"""
        if isinstance(self.logger, StructuredLogger):
            self.logger.info("Performance measurement", measurement)
        else:
            message = (
                f"Performance: {measurement['operation']} "
                f"took {measurement['elapsed_seconds']:.3f}s"
            )

            if "memory_delta_mb" in measurement:
                message += f", memory Δ{measurement['memory_delta_mb']:+.1f}MB"

            self.logger.info(message)

    def get_measurement(self, operation_name: str) -> Optional[Dict[str, Any]]:
        """計測結果を取得"""
        return self.measurements.get(operation_name)

    def clear_measurements(self) -> None:
        """計測結果をクリア"""
        self.measurements.clear()


def configure_logging(
    level: Union[int, str] = logging.INFO,
    output_format: str = "json"
) -> None:
    """標準loggingとstructlogを統一的に設定

    structlogのイベントは標準loggingへ流し、ハンドラーは
    ルートロガーに一つだけ設置します。

    Args:
        level: ログレベル（"INFO" 等の文字列も可）
        output_format: 出力形式（"json" or "text"）
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    if output_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

    # 既存のハンドラーを置き換え（二重出力の防止）
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)

    renderer = (
        structlog.processors.JSONRenderer()
        if output_format == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
