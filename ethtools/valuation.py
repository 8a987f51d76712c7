from decimal import Decimal, localcontext
from typing import Optional

from .models import DECIMAL_CTX, AggregatedPortfolio, PortfolioValue, ValuationRow

HUNDRED = Decimal(100)


def valuate(portfolio: AggregatedPortfolio, price_cache, currency: Optional[str] = None) -> PortfolioValue:
    """
    Price every aggregated symbol and order rows by value, largest first.

    price_cache needs get_price(symbol) and a vs_currency attribute; an explicit
    currency overrides the latter.
    """
    if currency is None:
        currency = price_cache.vs_currency
    with localcontext(DECIMAL_CTX):
        priced = []
        total = Decimal(0)
        for symbol, bal in portfolio.balances.items():
            # str() keeps the float's shortest repr instead of its binary expansion
            price = Decimal(str(price_cache.get_price(symbol)))
            value = bal.amount * price
            total += value
            priced.append((symbol, bal.amount, price, value))

        rows = [
            ValuationRow(
                symbol=symbol,
                balance=amount,
                price=price,
                value=value,
                percentage=(value / total * HUNDRED) if total > 0 else Decimal(0),
            )
            for symbol, amount, price, value in priced
        ]

    # sort is stable: equal values keep first-seen order
    rows.sort(key=lambda r: r.value, reverse=True)
    return PortfolioValue(total_value=total, rows=rows, currency=currency)
