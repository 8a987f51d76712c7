from __future__ import annotations

import contextlib
import io
import unittest
from decimal import Decimal

from ethtools.models import AggregatedPortfolio, TokenBalance, WalletBalance
from ethtools.valuation import valuate
from fakes import X, FakeOracle
from price_cache.pricing_cache import PriceCache


def _portfolio(*balances: TokenBalance) -> AggregatedPortfolio:
    portfolio = AggregatedPortfolio()
    portfolio.add_wallet(WalletBalance(address=X, balances={b.symbol: b for b in balances}))
    return portfolio


class ValuationTests(unittest.TestCase):
    def test_zero_priced_asset_gets_zero_share(self) -> None:
        portfolio = _portfolio(TokenBalance("A", 10, 0), TokenBalance("B", 5, 0))
        cache = PriceCache(oracle=FakeOracle({"a": 2, "b": 0}))

        value = valuate(portfolio, cache)

        self.assertEqual(value.total_value, Decimal(20))
        self.assertEqual([r.symbol for r in value.rows], ["A", "B"])
        self.assertEqual(value.rows[0].value, Decimal(20))
        self.assertEqual(value.rows[0].percentage, Decimal("100.00"))
        self.assertEqual(value.rows[1].percentage, Decimal("0.00"))

    def test_orders_rows_by_value_descending(self) -> None:
        portfolio = _portfolio(
            TokenBalance("LOW", 1, 0), TokenBalance("HIGH", 1, 0), TokenBalance("MID", 1, 0)
        )
        cache = PriceCache(oracle=FakeOracle({"low": 1, "high": 100, "mid": 10}))

        value = valuate(portfolio, cache)

        self.assertEqual([r.symbol for r in value.rows], ["HIGH", "MID", "LOW"])

    def test_ties_keep_first_seen_order(self) -> None:
        portfolio = _portfolio(TokenBalance("B", 1, 0), TokenBalance("A", 1, 0))
        cache = PriceCache(oracle=FakeOracle({"a": 3, "b": 3}))

        value = valuate(portfolio, cache)

        self.assertEqual([r.symbol for r in value.rows], ["B", "A"])

    def test_percentages_sum_to_hundred(self) -> None:
        portfolio = _portfolio(
            TokenBalance("A", 1, 0), TokenBalance("B", 1, 0), TokenBalance("C", 1, 0)
        )
        cache = PriceCache(oracle=FakeOracle({"a": 1, "b": 1, "c": 1}))

        value = valuate(portfolio, cache)

        total_pct = sum((r.percentage for r in value.rows), Decimal(0))
        self.assertAlmostEqual(float(total_pct), 100.0, places=6)

    def test_unreachable_oracle_degrades_to_zero(self) -> None:
        portfolio = _portfolio(TokenBalance("A", 10, 0), TokenBalance("B", 5, 0))
        cache = PriceCache(oracle=FakeOracle({}, failures={"a": 99, "b": 99}))

        with contextlib.redirect_stdout(io.StringIO()):
            value = valuate(portfolio, cache)

        self.assertEqual(value.total_value, Decimal(0))
        self.assertTrue(all(r.value == 0 and r.percentage == 0 for r in value.rows))
        self.assertEqual(len(value.rows), 2)

    def test_revaluation_is_idempotent(self) -> None:
        portfolio = _portfolio(TokenBalance("A", 1234567, 4), TokenBalance("B", 3, 0))
        cache = PriceCache(oracle=FakeOracle({"a": 1.1, "b": 0.3}))

        first = valuate(portfolio, cache)
        second = valuate(portfolio, cache)

        self.assertEqual(first.rows, second.rows)
        self.assertEqual(first.total_value, second.total_value)

    def test_float_price_uses_decimal_repr(self) -> None:
        portfolio = _portfolio(TokenBalance("A", 3, 0))
        cache = PriceCache(oracle=FakeOracle({"a": 0.1}))

        value = valuate(portfolio, cache)

        self.assertEqual(value.rows[0].price, Decimal("0.1"))
        self.assertEqual(value.total_value, Decimal("0.3"))

    def test_currency_follows_cache(self) -> None:
        cache = PriceCache(oracle=FakeOracle({"a": 1}), vs_currency="eur")
        value = valuate(_portfolio(TokenBalance("A", 1, 0)), cache)
        self.assertEqual(value.currency, "eur")

    def test_explicit_currency_wins(self) -> None:
        cache = PriceCache(oracle=FakeOracle({"a": 1}), vs_currency="eur")
        value = valuate(_portfolio(TokenBalance("A", 1, 0)), cache, currency="gbp")
        self.assertEqual(value.currency, "gbp")

    def test_cache_without_currency_is_rejected(self) -> None:
        class BarePrices:
            def get_price(self, symbol):
                return 1.0

        with self.assertRaises(AttributeError):
            valuate(_portfolio(TokenBalance("A", 1, 0)), BarePrices())


if __name__ == "__main__":
    unittest.main()
