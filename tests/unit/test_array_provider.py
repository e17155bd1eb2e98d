"""ArrayContainerクラスのユニットテスト"""

from unittest.mock import MagicMock

import pytest

from src.common.error_handling import ConfigurationError
from src.common.models import SourceKind
from src.providers.array_provider import ArrayContainer


class TestArrayContainer:
    """ArrayContainerのテスト"""

    def test_loads_on_construction(self):
        on_load = MagicMock()
        prices = ArrayContainer(data=[20, 22, 24], on_load=on_load)

        assert prices.get_all() == [20, 22, 24]
        assert prices.is_initialized
        assert prices.source_kind is SourceKind.ARRAY
        on_load.assert_called_once_with([20, 22, 24])

    def test_defaults_to_empty(self):
        prices = ArrayContainer()
        assert prices.get_all() == []
        assert prices.get_last() is None

    @pytest.mark.parametrize("data", [(1, 2), "123", {"a": 1}, 5])
    def test_non_list_data_raises(self, data):
        with pytest.raises(ConfigurationError, match="array"):
            ArrayContainer(data=data)

    def test_input_list_is_copied(self):
        data = [1, 2]
        prices = ArrayContainer(data=data)
        prices.add(3)
        assert data == [1, 2]

    def test_add_appends_and_fires(self):
        on_update = MagicMock()
        prices = ArrayContainer(data=[1], name="prices", on_update=on_update)

        prices.add(2)

        assert prices.get_all() == [1, 2]
        assert prices.get_last() == 2
        on_update.assert_called_once_with(2)

    def test_init_reloads_seed(self):
        prices = ArrayContainer(data=[1, 2])
        prices.add(3)

        assert prices.init() == [1, 2]
        assert prices.get_all() == [1, 2]

    def test_repr(self):
        prices = ArrayContainer(data=[1, 2], name="prices")
        assert repr(prices) == "ArrayContainer(name='prices', size=2, initialized=True)"
