"""
ArrayContainer - メモリ上のリストをデータ供給元とするコンテナ
"""

from __future__ import annotations

from typing import Any

from src.common.error_handling import ConfigurationError
from src.common.models import SourceKind
from src.pipeline.container import EventableContainer, Listener


class ArrayContainer(EventableContainer):
    """
    リテラル配列から構築される基本的なコンテナ

    構築時に初期データを読み込み（load イベントを発火）、
    以降は add() でデータ点を追加できます。

    Example:
        >>> prices = ArrayContainer(data=[20, 22, 24])
        >>> prices.add(25)
        >>> prices.get_last()
        25
    """

    source_kind = SourceKind.ARRAY

    def __init__(
        self,
        data: list[Any] | None = None,
        name: str | None = None,
        on_load: Listener | None = None,
        on_update: Listener | None = None,
    ) -> None:
        """
        初期化

        Args:
            data: 初期データ（デフォルト: 空リスト）
            name: コンテナ名
            on_load: load イベントのリスナー
            on_update: update イベントのリスナー

        Raises:
            ConfigurationError: data がリストでない場合
        """
        super().__init__(source="local", name=name, on_load=on_load, on_update=on_update)
        if data is None:
            data = []
        if not isinstance(data, list):
            raise ConfigurationError(
                f"{self.name} must be initialized with data as array",
                details={"container": self.name, "type": type(data).__name__},
            )
        self._seed = list(data)
        self.init()

    def load(self) -> list[Any]:
        return list(self._seed)

    def add(self, datum: Any) -> None:
        """データ点を末尾に追加し、追加したデータ点を update で通知します"""
        self._append(self.validate(datum))
