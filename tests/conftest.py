"""
pytest共通設定とフィクスチャ

テスト実行で使用する共通設定、フィクスチャ、ヘルパー関数を定義します。
"""

import logging
import tempfile
from pathlib import Path
from typing import Generator

import numpy as np
import polars as pl
import pytest
import structlog

from src.common.config import ConfigManager
from src.pipeline.container import EventableContainer


# =====================================
# pytest設定
# =====================================

def pytest_configure(config):
    """pytest実行時の初期設定"""
    # カスタムマーカーの登録
    config.addinivalue_line(
        "markers", "unit: ユニットテストのマーカー"
    )
    config.addinivalue_line(
        "markers", "integration: 統合テストのマーカー"
    )
    config.addinivalue_line(
        "markers", "slow: 実行時間の長いテスト"
    )


# =====================================
# 設定関連フィクスチャ
# =====================================

@pytest.fixture(autouse=True)
def reset_config():
    """テストごとに設定シングルトンをリセット"""
    ConfigManager.reset_instance()
    yield
    ConfigManager.reset_instance()


@pytest.fixture
def restore_root_logging():
    """ルートロガーとstructlogの設定をテスト後に復元"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    structlog.reset_defaults()


# =====================================
# ファイルシステム関連フィクスチャ
# =====================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """テスト用一時ディレクトリ"""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def candle_csv_files(temp_dir: Path, sample_candles: pl.DataFrame) -> list[Path]:
    """ローソク足データを二つのCSVファイルに分割して書き出し"""
    first = temp_dir / "candles-01.csv"
    second = temp_dir / "candles-02.csv"
    sample_candles.head(6).write_csv(first)
    sample_candles.tail(4).write_csv(second)
    return [first, second]


# =====================================
# サンプルデータフィクスチャ
# =====================================

@pytest.fixture
def sample_prices() -> list[int]:
    """移動平均の検証に使用する価格系列"""
    return [20, 22, 24, 25, 23, 26, 28, 26, 29]


@pytest.fixture
def sample_candles() -> pl.DataFrame:
    """サンプルローソク足データ（10本）"""
    np.random.seed(42)
    n_bars = 10

    closes = 1.1000 + np.cumsum(np.random.normal(0, 0.001, n_bars))
    opens = np.concatenate([[1.1000], closes[:-1]])

    return pl.DataFrame({
        "bar": list(range(n_bars)),
        "open": opens,
        "close": closes,
        "volume": np.random.randint(50, 500, n_bars),
    })


# =====================================
# テスト用コンテナ
# =====================================

class RecordingContainer(EventableContainer):
    """テスト用の最小コンテナ（load はコンストラクタ引数をそのまま返す）"""

    def __init__(self, data=None, **kwargs):
        super().__init__(source="memory", **kwargs)
        self._data = list(data or [])

    def load(self):
        return list(self._data)

    def add(self, datum):
        self._append(datum)


class AsyncRecordingContainer(RecordingContainer):
    """load() がコルーチンを返すテスト用コンテナ"""

    async def load(self):
        return list(self._data)


@pytest.fixture
def make_container():
    """テスト用コンテナのファクトリ"""
    def _make(data=None, asynchronous=False, **kwargs):
        cls = AsyncRecordingContainer if asynchronous else RecordingContainer
        return cls(data=data, **kwargs)
    return _make
