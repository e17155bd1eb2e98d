"""
変換処理（Transform）の基底クラス

パイプライン上のデータ点、またはデータ系列全体を写像する
純粋な変換処理を定義します。
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from src.common.error_handling import AbstractOperationError, ConfigurationError
from src.common.models import TransformCapability


class Transform:
    """
    変換処理の基底クラス

    サブクラスは apply() を実装します。系列全体を一度に変換できる場合は
    apply_all() も実装し、capability を HAS_BULK_APPLY に設定します。
    変換処理はパイプラインに対して状態を持たず、副作用を持ちません。
    """

    capability: TransformCapability = TransformCapability.ELEMENTWISE_ONLY

    def __init__(self, name: str | None = None) -> None:
        self.name = name or self.__class__.__name__

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, capability={self.capability.value})"

    def apply(self, datum: Any) -> Any:
        """
        一つのデータ点を変換します

        Raises:
            AbstractOperationError: サブクラスで実装されていない場合
        """
        raise AbstractOperationError(
            f"{self.name} method apply() must be implemented",
            details={"transform": self.name},
        )

    def apply_all(self, values: list[Any]) -> list[Any]:
        """
        データ系列全体を変換します

        Raises:
            AbstractOperationError: 一括変換に対応していない場合
        """
        raise AbstractOperationError(
            f"{self.name} method apply_all() must be implemented",
            details={"transform": self.name},
        )


class FunctionTransform(Transform):
    """通常の関数を要素単位の変換として扱うアダプター"""

    def __init__(self, func: Callable[[Any], Any], name: str | None = None) -> None:
        if not callable(func):
            raise ConfigurationError(f"{func!r} must be a function or an instance of Transform")
        super().__init__(name or getattr(func, "__name__", "FunctionTransform"))
        self.func = func

    def apply(self, datum: Any) -> Any:
        return self.func(datum)


def as_transform(stage: Any) -> Transform:
    """
    Transformインスタンスまたは関数をTransformに正規化します

    Raises:
        ConfigurationError: どちらでもない場合
    """
    if isinstance(stage, Transform):
        return stage
    if callable(stage):
        return FunctionTransform(stage)
    raise ConfigurationError(f"{stage!r} must be a function or an instance of Transform")


def apply_chain(chain: Sequence[Transform], datum: Any) -> Any:
    """変換チェーンを一つのデータ点に順に適用します"""
    for stage in chain:
        datum = stage.apply(datum)
    return datum


def apply_chain_all(chain: Sequence[Transform], values: list[Any]) -> list[Any]:
    """
    変換チェーンをデータ系列全体に順に適用します

    一括変換に対応した段は apply_all()、それ以外は要素ごとに apply() を使用します。
    """
    data = list(values)
    for stage in chain:
        if stage.capability is TransformCapability.HAS_BULK_APPLY:
            data = stage.apply_all(data)
        else:
            data = [stage.apply(datum) for datum in data]
    return data
