"""
取引戦略シミュレーター

資産残高を保持し、売買操作をシミュレートする変換処理の基底クラスを提供します。
サブクラスは trade() を実装し、入力データに基づいて売買を判断します。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from src.common.error_handling import (
    AbstractOperationError,
    ConfigurationError,
    validation_to_configuration_error,
)
from src.common.models import Asset
from src.pipeline.transform import Transform

logger = logging.getLogger(__name__)


class TradingStrategySimulator(Transform):
    """
    取引戦略シミュレーターの基底クラス

    assets は資産名から {"price": 価格, "balance": 残高} への辞書で、
    base_asset は価格の基準となる資産名（例: "USD"）です。
    apply() は trade() を呼び出し、データ点をそのまま返します。

    Example:
        >>> class BuyTheDip(TradingStrategySimulator):
        ...     def trade(self, datum):
        ...         self.set_price("BTC", datum)
        ...         if datum < 100:
        ...             self.buy_max("BTC")
        >>> strategy = BuyTheDip(
        ...     assets={"USD": {"price": 1, "balance": 1000}, "BTC": {"price": 120, "balance": 0}},
        ...     base_asset="USD",
        ... )
        >>> runner = PipelineRunner([(prices, strategy)], speed=100)
    """

    def __init__(
        self,
        assets: dict[str, Any] | None = None,
        base_asset: str | None = None,
        name: str | None = None,
        on_buy: Callable[[], Any] | None = None,
        on_sell: Callable[[], Any] | None = None,
    ) -> None:
        """
        初期化

        Args:
            assets: 資産名から価格・残高への辞書
            base_asset: 基軸資産名
            name: 変換処理名
            on_buy: 購入成立時のコールバック
            on_sell: 売却成立時のコールバック

        Raises:
            ConfigurationError: assets / base_asset が欠落・不正な場合
        """
        super().__init__(name=name)
        if assets is None:
            raise ConfigurationError(f"{self.name} must contain assets object")
        if base_asset is None:
            raise ConfigurationError(f"{self.name} must specify base_asset string")

        try:
            self.assets: dict[str, Asset] = {
                asset: value if isinstance(value, Asset) else Asset(**value)
                for asset, value in assets.items()
            }
        except ValidationError as e:
            raise validation_to_configuration_error(e, self.name) from e

        if base_asset not in self.assets:
            raise ConfigurationError(
                f"{self.name} base_asset '{base_asset}' is not defined in assets",
                details={"assets": list(self.assets)},
            )
        self.base_asset = base_asset
        self._on_buy = on_buy
        self._on_sell = on_sell

    # ------------------------------------------------------------------
    # 売買
    # ------------------------------------------------------------------

    def _asset(self, asset: str) -> Asset:
        target = self.assets.get(asset)
        if target is None:
            raise ConfigurationError(f"{self.name} asset '{asset}' does not exist")
        return target

    def _check_order(self, amount: float, fee: float) -> None:
        if amount < 0 or fee < 0:
            raise ConfigurationError(
                f"{self.name} order amount and fee must be non-negative",
                details={"amount": amount, "fee": fee},
            )

    def buy(self, asset: str, amount: float, fee: float = 0.0) -> bool:
        """指定数量を購入します（残高不足の場合はFalse）"""
        self._check_order(amount, fee)
        base = self.assets[self.base_asset]
        target = self._asset(asset)
        cost = amount * target.price + fee
        if cost > base.balance:
            logger.warning(f"{self.name} insufficient funds to buy {amount} {asset}")
            return False

        base.balance -= cost
        target.balance += amount
        self._notify(self._on_buy)
        return True

    def buy_max(self, asset: str, fee: float = 0.0) -> bool:
        """基軸資産の残高すべてで購入します"""
        self._check_order(0.0, fee)
        base = self.assets[self.base_asset]
        target = self._asset(asset)
        if asset == self.base_asset or target.price <= 0 or base.balance <= fee:
            logger.warning(f"{self.name} nothing to buy for {asset}")
            return False

        target.balance += (base.balance - fee) / target.price
        base.balance = 0.0
        self._notify(self._on_buy)
        return True

    def sell(self, asset: str, amount: float, fee: float = 0.0) -> bool:
        """指定数量を売却します（残高不足の場合はFalse）"""
        self._check_order(amount, fee)
        base = self.assets[self.base_asset]
        target = self._asset(asset)
        if asset == self.base_asset or target.balance == 0:
            logger.warning(f"{self.name} nothing to sell")
            return False
        if target.balance < amount:
            logger.warning(f"{self.name} sell order amount is higher than balance")
            return False
        if amount * target.price < fee:
            logger.warning(f"{self.name} fee exceeds the value of the sell order")
            return False

        base.balance += amount * target.price - fee
        target.balance -= amount
        self._notify(self._on_sell)
        return True

    def sell_max(self, asset: str, fee: float = 0.0) -> bool:
        """保有数量すべてを売却します"""
        self._check_order(0.0, fee)
        base = self.assets[self.base_asset]
        target = self._asset(asset)
        if asset == self.base_asset or target.balance == 0:
            logger.warning(f"{self.name} nothing to sell")
            return False
        if target.balance * target.price < fee:
            logger.warning(f"{self.name} fee exceeds the value of the sell order")
            return False

        base.balance += target.balance * target.price - fee
        target.balance = 0.0
        self._notify(self._on_sell)
        return True

    def _notify(self, callback: Callable[[], Any] | None) -> None:
        if callback is not None:
            callback()

    # ------------------------------------------------------------------
    # Getters / Setters
    # ------------------------------------------------------------------

    def get_assets(self) -> dict[str, Asset]:
        return self.assets

    def get_base_asset(self) -> str:
        return self.base_asset

    def get_asset_value(self, asset: str) -> float:
        """資産の評価額（残高 × 価格）を返します"""
        target = self._asset(asset)
        return target.balance * target.price

    def set_price(self, asset: str, price: float) -> None:
        """
        資産価格を更新します（未定義の資産は無視）

        Raises:
            ConfigurationError: 価格が負の場合
        """
        if asset in self.assets:
            try:
                self.assets[asset].price = price
            except ValidationError as e:
                raise validation_to_configuration_error(e, self.name) from e

    # ------------------------------------------------------------------
    # 変換処理
    # ------------------------------------------------------------------

    def trade(self, datum: Any) -> None:
        """
        入力データに基づいて売買を判断します（サブクラスで実装必須）

        Raises:
            AbstractOperationError: サブクラスで実装されていない場合
        """
        raise AbstractOperationError(f"{self.name} trade() must be implemented by subclass")

    def apply(self, datum: Any) -> Any:
        self.trade(datum)
        return datum
