"""統一的なエラーハンドリングモジュール

このモジュールは、Series Flow全体で使用される
共通例外クラスとエラーハンドリング機能を提供します。

例外の分類:
    - ConfigurationError: 構築時パラメータの欠落・不正
    - AbstractOperationError: サブクラスで実装されていない抽象操作の呼び出し
    - StateError: 現在のライフサイクル状態では無効な操作
    - DataLoadError: 外部ソースからのデータ読み込み失敗
"""

import json
import logging
import traceback
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Dict, Optional, Type

from pydantic import ValidationError


# ========================================
# 基底例外クラス階層
# ========================================

class SeriesFlowError(Exception):
    """Series Flow基底例外クラス

    すべてのカスタム例外はこのクラスを継承します。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        初期化

        Args:
            message: エラーメッセージ
            error_code: エラーコード（ログ追跡用）
            details: 詳細情報の辞書
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.timestamp = datetime.now(UTC)

    def to_dict(self) -> Dict[str, Any]:
        """エラー情報を辞書形式で取得

        Returns:
            Dict[str, Any]: エラー情報
        """
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }

    def to_json(self) -> str:
        """エラー情報をJSON文字列で取得"""
        return json.dumps(self.to_dict(), default=str)


class ConfigurationError(SeriesFlowError):
    """設定エラー

    必須の構築パラメータが欠落している、または不正な場合に発生します。
    コンポーネント自身では回復できません。
    """
    pass


class StateError(SeriesFlowError):
    """状態エラー

    現在のライフサイクル状態では許可されない操作が行われた場合に発生します。
    （例：スケジューラ開始後のリスナー登録、停止済みスケジューラの再開）
    """
    pass


class AbstractOperationError(SeriesFlowError, NotImplementedError):
    """未実装エラー

    具象サブクラスでオーバーライドされていない抽象操作が
    呼び出された場合に発生します。常にサブクラス側のプログラミングエラーです。
    """
    pass


class DataLoadError(SeriesFlowError):
    """データ読み込みエラー

    ファイル等の外部ソースからデータを読み込めなかった場合に発生します。
    """
    pass


def validation_to_configuration_error(
    error: ValidationError,
    component: str
) -> ConfigurationError:
    """PydanticのValidationErrorをConfigurationErrorに変換

    Args:
        error: オプションモデルの検証エラー
        component: エラーを報告するコンポーネント名

    Returns:
        ConfigurationError: フィールド単位の詳細を含む設定エラー
    """
    problems = [
        {
            "field": ".".join(str(loc) for loc in e["loc"]),
            "message": e["msg"],
            "type": e["type"]
        }
        for e in error.errors()
    ]
    summary = "; ".join(f"{p['field']}: {p['message']}" for p in problems)
    return ConfigurationError(
        f"{component} {summary}",
        details={"component": component, "validation_errors": problems}
    )


# ========================================
# エラーハンドラー
# ========================================

class ErrorHandler:
    """統一的なエラーハンドリング機能

    エラーを構造化ログとして記録し、呼び出し元へ再送出します。
    内部でのリトライや握りつぶしは行いません。

    Example:
        >>> handler = ErrorHandler()
        >>> with handler.handle_errors("scheduler_tick"):
        ...     risky_operation()
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.ERROR
    ):
        """
        初期化

        Args:
            logger: ロガーインスタンス
            log_level: ログレベル
        """
        self.logger = logger or logging.getLogger(__name__)
        self.log_level = log_level
        self.error_count = 0
        self.last_error: Optional[Exception] = None

    @contextmanager
    def handle_errors(
        self,
        operation_name: str = "operation",
        error_types: Optional[tuple[Type[Exception], ...]] = None
    ):
        """エラーハンドリングコンテキストマネージャー

        Args:
            operation_name: 操作名（ログ用）
            error_types: ハンドリングする例外タイプ

        Yields:
            エラーハンドラーコンテキスト
        """
        error_types = error_types or (Exception,)

        try:
            yield self
        except error_types as e:
            self.error_count += 1
            self.last_error = e

            error_info = self._format_error_info(e, operation_name)
            self.logger.log(self.log_level, json.dumps(error_info, default=str))

            if self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug(f"Traceback:\n{traceback.format_exc()}")

            raise

    def _format_error_info(
        self,
        error: Exception,
        operation_name: str
    ) -> Dict[str, Any]:
        """エラー情報を構造化形式にフォーマット

        Args:
            error: 例外オブジェクト
            operation_name: 操作名

        Returns:
            Dict[str, Any]: 構造化されたエラー情報
        """
        error_info = {
            "event": "error_occurred",
            "operation": operation_name,
            "error_type": type(error).__name__,
            "error_message": str(error),
            "timestamp": datetime.now(UTC).isoformat()
        }

        if isinstance(error, SeriesFlowError):
            error_info.update({
                "error_code": error.error_code,
                "details": error.details
            })
        elif isinstance(error, ValidationError):
            error_info["validation_errors"] = [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"]
                }
                for e in error.errors()
            ]

        return error_info

    def reset_stats(self) -> None:
        """エラー統計をリセット"""
        self.error_count = 0
        self.last_error = None
