"""Console rendering of snapshot and portfolio results."""

from decimal import Decimal

from .models import AggregatedPortfolio, HolderSnapshot, PortfolioValue

RULE = "=" * 80
THIN = "-" * 80


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


def format_snapshot(snapshot: HolderSnapshot, top: int = 20) -> str:
    lines = [
        "",
        RULE,
        "🖼️  NFT HOLDER SNAPSHOT RESULTS",
        RULE,
        f"📜 Contract: {snapshot.contract}",
        f"🔢 Token range: [{snapshot.start}, {snapshot.end})",
        f"📊 Total Unique Holders: {snapshot.total_holders}",
        f"🎯 Total Tokens Tracked: {snapshot.total_tokens}",
        f"📈 Average Tokens per Holder: {snapshot.average_per_holder:.2f}",
        f"⚠️  Unresolved token ids: {len(snapshot.unresolved)}",
        "",
        "Top Holders:",
        THIN,
        "Rank | Address                                    | Token Count",
        THIN,
    ]
    for rank, (address, count) in enumerate(snapshot.top(top), start=1):
        lines.append(f"{rank:>4} | {address:<42} | {count:>11}")

    if snapshot.total_holders > top:
        lines.append("")
        lines.append(f"... and {snapshot.total_holders - top} more holders")
    return "\n".join(lines)


def format_portfolio(value: PortfolioValue, portfolio: AggregatedPortfolio) -> str:
    cur = value.currency.upper()
    lines = [
        RULE,
        "MULTI-WALLET PORTFOLIO SUMMARY",
        RULE,
        f"Total Portfolio Value: {_money(value.total_value)} {cur}",
        "",
        "Asset Breakdown:",
        THIN,
        f"{'Symbol':<8} {'Balance':<18} {'Price':<14} {'Value':<18} {'% Portfolio':<10}",
        THIN,
    ]
    for row in value.rows:
        lines.append(
            f"{row.symbol:<8} {row.balance:<18.6f} {_money(row.price):<14} "
            f"{_money(row.value):<18} {row.percentage:.2f}%"
        )

    lines.append("")
    lines.append("Wallet Breakdown:")
    lines.append(THIN)
    for i, wallet in enumerate(portfolio.wallets, start=1):
        lines.append("")
        lines.append(f"{i}. {wallet.label or 'Wallet'} ({wallet.address})")
        if not wallet.balances:
            lines.append("   No significant balances found")
            continue
        for symbol, bal in wallet.balances.items():
            lines.append(f"   {symbol}: {bal.amount:.6f}")
    return "\n".join(lines)


def display_snapshot(snapshot: HolderSnapshot, top: int = 20) -> None:
    print(format_snapshot(snapshot, top))


def display_portfolio(value: PortfolioValue, portfolio: AggregatedPortfolio) -> None:
    print(format_portfolio(value, portfolio))
