"""
イベント駆動データコンテナ

順序付きデータ系列を保持し、load / update の二種類のイベントを
登録済みリスナーへ同期的に通知する基底クラスを提供します。
具象コンテナ（配列・CSV・派生系列）はこのクラスを継承します。
"""

from __future__ import annotations

import copy
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from src.common.error_handling import AbstractOperationError, ConfigurationError
from src.common.models import ContainerEvent, SourceKind

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


class EventableContainer:
    """
    イベント通知付きデータコンテナの基底クラス

    Features:
        - load() / normalize() による初期データの取得（同期・非同期両対応）
        - add / set_all / set_at による変更と update イベントの発火
        - 登録順でのリスナー呼び出し（発火中の登録解除にも安全）

    Attributes:
        name: コンテナ名（ログ・エラーメッセージ用）
        source_kind: データ供給元の種別（サブクラスで宣言）

    Note:
        - values は自身のセッター経由でのみ変更されます
        - 同一コンテナに対する並行した init() 呼び出しはサポートしません
    """

    source_kind: SourceKind | None = None

    def __init__(
        self,
        source: Any = None,
        name: str | None = None,
        on_load: Listener | None = None,
        on_update: Listener | None = None,
    ) -> None:
        """
        初期化

        Args:
            source: データ供給元（ファイルパス、派生元コンテナ等）
            name: コンテナ名（デフォルト: クラス名）
            on_load: load イベントのリスナー
            on_update: update イベントのリスナー

        Raises:
            ConfigurationError: source が指定されていない場合
        """
        self.name = name or self.__class__.__name__
        self._values: list[Any] = []
        self._initialized = False
        self._listeners: dict[ContainerEvent, list[Listener]] = {
            ContainerEvent.LOAD: [],
            ContainerEvent.UPDATE: [],
        }

        if source is None:
            raise ConfigurationError(
                f"{self.name} must be instantiated with source property",
                details={"container": self.name},
            )
        self._source = source

        if on_load is not None:
            self.add_event_listener(ContainerEvent.LOAD, on_load)
        if on_update is not None:
            self.add_event_listener(ContainerEvent.UPDATE, on_update)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name!r}, "
            f"size={len(self._values)}, initialized={self._initialized})"
        )

    def __len__(self) -> int:
        return len(self._values)

    # ------------------------------------------------------------------
    # 抽象フック
    # ------------------------------------------------------------------

    def load(self) -> list[Any] | Awaitable[list[Any]]:
        """
        初期データの取得方法を定義します（サブクラスで実装必須）

        Returns:
            データ系列、またはデータ系列を返すawaitable

        Raises:
            AbstractOperationError: サブクラスで実装されていない場合
        """
        raise AbstractOperationError(
            f"{self.name} method load() must be implemented",
            details={"container": self.name},
        )

    def normalize(self, raw: Any) -> list[Any]:
        """読み込み直後のデータ系列を正規化するフック（既定は恒等変換）"""
        return raw

    def validate(self, datum: Any) -> Any:
        """追加前のデータ点を検証・整形するフック（既定は恒等変換）"""
        return datum

    def add(self, datum: Any) -> None:
        """
        データ点を追加し update イベントを発火します（サブクラスで実装必須）

        Raises:
            AbstractOperationError: サブクラスで実装されていない場合
        """
        raise AbstractOperationError(
            f"{self.name} add() method must be implemented by subclass",
            details={"container": self.name},
        )

    # ------------------------------------------------------------------
    # 初期化
    # ------------------------------------------------------------------

    def init(self) -> list[Any] | Awaitable[list[Any]]:
        """
        load → normalize を実行して値を格納し、load イベントを発火します

        load() が awaitable を返す場合、init() はコルーチンを返します。
        その場合、正規化とリスナー通知は値が得られた後に行われます。

        Returns:
            正規化済みのデータ系列（非同期の場合はそのコルーチン）
        """
        loaded = self.load()
        if inspect.isawaitable(loaded):
            return self._complete_async_init(loaded)
        return self._complete_init(loaded)

    async def _complete_async_init(self, pending: Awaitable[Any]) -> list[Any]:
        raw = await pending
        return self._complete_init(raw)

    def _complete_init(self, raw: Any) -> list[Any]:
        self._values = self.normalize(raw)
        self._initialized = True
        logger.debug(f"{self.name} loaded {len(self._values)} values")
        self._fire(ContainerEvent.LOAD, self._values)
        return self._values

    # ------------------------------------------------------------------
    # イベント
    # ------------------------------------------------------------------

    def _resolve_event(self, event: ContainerEvent | str, callback: Any) -> ContainerEvent:
        if not callable(callback):
            raise ConfigurationError(
                f"{self.name} event listener must be callable",
                details={"container": self.name, "event": str(event)},
            )
        try:
            return ContainerEvent(event)
        except ValueError:
            raise ConfigurationError(
                f"{self.name} unknown event '{event}'",
                details={"container": self.name, "event": str(event)},
            ) from None

    def add_event_listener(self, event: ContainerEvent | str, callback: Listener) -> None:
        """
        イベントリスナーを登録します

        Args:
            event: "load" または "update"
            callback: ペイロードを一つ受け取るコールバック

        Raises:
            ConfigurationError: 不明なイベント、または呼び出し不能なコールバックの場合
        """
        kind = self._resolve_event(event, callback)
        listeners = self._listeners[kind]
        if callback not in listeners:
            listeners.append(callback)

    def remove_event_listener(self, event: ContainerEvent | str, callback: Listener) -> None:
        """イベントリスナーの登録を解除します（未登録の場合は何もしません）"""
        kind = self._resolve_event(event, callback)
        listeners = self._listeners[kind]
        if callback in listeners:
            listeners.remove(callback)

    def _fire(self, kind: ContainerEvent, payload: Any) -> None:
        listeners = self._listeners[kind]
        # スナップショットを走査し、発火中に解除されたリスナーは呼ばない
        for callback in list(listeners):
            if callback in listeners:
                callback(payload)

    # ------------------------------------------------------------------
    # Getters
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        """init() が完了しているか"""
        return self._initialized

    def get_all(self) -> list[Any]:
        """データ系列のコピーを返します（変更はセッター経由で行います）"""
        return list(self._values)

    def get_at(self, index: int) -> Any:
        return self._values[index]

    def get_last(self) -> Any:
        """最後のデータ点を返します（空の場合はNone）"""
        if not self._values:
            return None
        return self._values[-1]

    def get_source(self) -> Any:
        return self._source

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_all(self, values: list[Any]) -> None:
        """データ系列全体を置き換え、新しい系列を update で通知します"""
        self._values = list(values)
        self._fire(ContainerEvent.UPDATE, self._values)

    def set_at(self, index: int, datum: Any) -> None:
        """一要素を置き換え、置き換えたデータ点を update で通知します"""
        self._values[index] = datum
        self._fire(ContainerEvent.UPDATE, datum)

    def _append(self, datum: Any) -> None:
        self._values.append(datum)
        self._fire(ContainerEvent.UPDATE, datum)

    # ------------------------------------------------------------------
    # ユーティリティ
    # ------------------------------------------------------------------

    def deep_copy(self) -> list[Any]:
        """データ系列の深いコピーを返します"""
        return copy.deepcopy(self._values)

    def reverse(self) -> None:
        """データ系列の順序をその場で反転します（イベントは発火しません）"""
        self._values.reverse()
