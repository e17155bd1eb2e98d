"""
CsvContainer - CSVファイルを非同期に読み込むコンテナ

一つまたは複数のCSVファイルをPolarsで読み込み、
ファイルごとのレコードリストを一つの系列に平坦化します。
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import polars as pl

from src.common.config import get_config
from src.common.error_handling import DataLoadError
from src.common.models import ContainerEvent, SourceKind
from src.pipeline.container import EventableContainer, Listener

logger = logging.getLogger(__name__)


class CsvContainer(EventableContainer):
    """
    CSVファイル群を供給元とするコンテナ

    load() はコルーチンのため、init() は await して使用します。

    Example:
        >>> candles = CsvContainer(source=["2024-01.csv", "2024-02.csv"])
        >>> await candles.init()
        >>> candles.get_last()["close"]
    """

    source_kind = SourceKind.FILE

    def __init__(
        self,
        source: str | Path | list[str | Path] | None = None,
        name: str | None = None,
        on_load: Listener | None = None,
        on_update: Listener | None = None,
        separator: str | None = None,
    ) -> None:
        """
        初期化

        Args:
            source: CSVファイルのパス、またはパスのリスト
            name: コンテナ名
            on_load: load イベントのリスナー
            on_update: update イベントのリスナー
            separator: 区切り文字（デフォルト: 設定値 csv_separator）
        """
        super().__init__(source=source, name=name, on_load=on_load, on_update=on_update)
        self.separator = separator or get_config().csv_separator

    @property
    def files(self) -> list[Path]:
        sources = self._source if isinstance(self._source, list) else [self._source]
        return [Path(path) for path in sources]

    async def load(self) -> list[list[dict[str, Any]]]:
        """
        すべてのCSVファイルを読み込み、ファイルごとのレコードリストを返します

        Raises:
            DataLoadError: ファイルが存在しない、または解析に失敗した場合
        """
        return list(await asyncio.gather(*(self._read_file(path) for path in self.files)))

    async def _read_file(self, path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            raise DataLoadError(
                f"{self.name} CSV file not found: {path}",
                details={"container": self.name, "path": str(path)},
            )
        try:
            frame = await asyncio.to_thread(pl.read_csv, path, separator=self.separator)
        except pl.exceptions.PolarsError as e:
            raise DataLoadError(
                f"{self.name} failed to parse {path}: {e}",
                details={"container": self.name, "path": str(path)},
            ) from e

        logger.info(f"{self.name} read {frame.height} rows from {path}")
        return frame.to_dicts()

    def normalize(self, raw: list[list[dict[str, Any]]]) -> list[dict[str, Any]]:
        """ファイルごとのレコードリストを一つの系列に平坦化します"""
        return [record for records in raw for record in records]

    def add(self, item: dict[str, Any] | list[Any]) -> None:
        """
        レコードを追加し、追加した内容を update で通知します

        レコードのリスト（またはリストのリスト）を渡した場合は平坦化して追加します。
        """
        if isinstance(item, list):
            records = [
                self.validate(record)
                for record in self.normalize([r if isinstance(r, list) else [r] for r in item])
            ]
            self._values.extend(records)
            self._fire(ContainerEvent.UPDATE, records)
        else:
            self._append(self.validate(item))
