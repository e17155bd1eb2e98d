"""
派生系列（ローリング集計）モジュール

他のコンテナの update イベントを購読し、直近 N 個の値に対する
集計値（移動平均など）を継続的に追記する派生コンテナを提供します。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import numpy as np
from pydantic import ValidationError

from src.common.config import get_config
from src.common.error_handling import (
    AbstractOperationError,
    ConfigurationError,
    StateError,
    validation_to_configuration_error,
)
from src.common.models import ContainerEvent, RollingWindowOptions, SourceKind
from src.pipeline.container import EventableContainer, Listener

logger = logging.getLogger(__name__)


class RollingAggregate(EventableContainer):
    """
    ソースコンテナに追従するローリング集計の基底クラス

    構築時に現在のソースで計算可能なすべての過去ウィンドウを集計し、
    その後ソースの update イベントごとに直近ウィンドウの集計値を1つ追記します。
    ソースの値がウィンドウサイズに満たない場合、イベントは何もしません。

    サブクラスは aggregate() を実装します。

    Attributes:
        size: ウィンドウサイズ
        key: ソース要素から数値を取り出すフィールド名（省略可）

    Note:
        - get_all() は派生値のみを返し、ソースの生データは含みません
        - 外部からの add / set_all / set_at は許可されません
        - ソース系列の縮小はサポートしません
    """

    source_kind = SourceKind.DERIVED

    def __init__(
        self,
        source: EventableContainer | None = None,
        size: int | None = None,
        key: str | None = None,
        name: str | None = None,
        on_load: Listener | None = None,
        on_update: Listener | None = None,
    ) -> None:
        """
        初期化

        Args:
            source: ソースコンテナ（共有参照、所有しない）
            size: ウィンドウサイズ（デフォルト: 設定値 default_window_size）
            key: ソース要素から値を取り出すフィールド名
            name: コンテナ名
            on_load: load イベントのリスナー
            on_update: update イベントのリスナー

        Raises:
            ConfigurationError: source がコンテナでない、size が1未満、
                またはソースの参照が循環している場合
        """
        super().__init__(source=source, name=name, on_load=on_load, on_update=on_update)
        if not isinstance(source, EventableContainer):
            raise ConfigurationError(
                f"{self.name} must be initialized with source as an EventableContainer instance",
                details={"container": self.name, "type": type(source).__name__},
            )
        self._check_acyclic(source)

        if size is None:
            size = get_config().default_window_size
        try:
            options = RollingWindowOptions(size=size, key=key)
        except ValidationError as e:
            raise validation_to_configuration_error(e, self.name) from e

        self.size = options.size
        self.key = options.key
        self._attached = False

        self.init()
        source.add_event_listener(ContainerEvent.UPDATE, self._on_source_update)
        self._attached = True

    def _check_acyclic(self, source: EventableContainer) -> None:
        seen = {id(self)}
        node: Any = source
        while isinstance(node, EventableContainer) and node.source_kind is SourceKind.DERIVED:
            if id(node) in seen:
                raise ConfigurationError(
                    f"{self.name} source chain contains a cycle",
                    details={"container": self.name, "at": node.name},
                )
            seen.add(id(node))
            node = node.get_source()

    # ------------------------------------------------------------------
    # 集計
    # ------------------------------------------------------------------

    def aggregate(self, window: Sequence[float]) -> float:
        """
        一つのウィンドウを集計します（サブクラスで実装必須）

        Raises:
            AbstractOperationError: サブクラスで実装されていない場合
        """
        raise AbstractOperationError(
            f"{self.name} method aggregate() must be implemented",
            details={"container": self.name},
        )

    def _project(self, items: Sequence[Any]) -> list[Any]:
        if self.key is None:
            return list(items)
        return [float(item[self.key]) for item in items]

    def load(self) -> list[float]:
        """現在のソースから計算可能なすべての過去ウィンドウを集計します"""
        data = self._project(self._source.get_all())
        if len(data) < self.size:
            return []
        return [
            self.aggregate(data[end - self.size:end])
            for end in range(self.size, len(data) + 1)
        ]

    def _on_source_update(self, _payload: Any) -> None:
        data = self._source.get_all()
        if len(data) < self.size:
            return
        value = self.aggregate(self._project(data[len(data) - self.size:]))
        self._append(value)

    def detach(self) -> None:
        """ソースの update イベントの購読を解除します"""
        if self._attached:
            self._source.remove_event_listener(ContainerEvent.UPDATE, self._on_source_update)
            self._attached = False
            logger.debug(f"{self.name} detached from {self._source.name}")

    # ------------------------------------------------------------------
    # 外部からの変更は不可
    # ------------------------------------------------------------------

    def _read_only(self, operation: str) -> StateError:
        return StateError(
            f"{self.name} is a derived series; {operation}() is not allowed",
            details={"container": self.name, "operation": operation},
        )

    def add(self, datum: Any) -> None:
        raise self._read_only("add")

    def set_all(self, values: list[Any]) -> None:
        raise self._read_only("set_all")

    def set_at(self, index: int, datum: Any) -> None:
        raise self._read_only("set_at")


class MovingAverage(RollingAggregate):
    """
    単純移動平均

    ウィンドウ内の値の合計をウィンドウサイズで割った値（浮動小数点）を追記します。

    Example:
        >>> prices = ArrayContainer(data=[20, 22, 24, 25, 23, 26, 28, 26, 29])
        >>> ma10 = MovingAverage(source=prices, size=10)
        >>> ma10.get_all()
        []
        >>> prices.add(27)
        >>> ma10.get_all()
        [25.0]
    """

    def aggregate(self, window: Sequence[float]) -> float:
        return float(np.sum(np.asarray(window, dtype=np.float64))) / self.size
