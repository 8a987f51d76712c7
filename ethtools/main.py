"""
Command line entry point.

  python -m ethtools.main snapshot --contract 0x... [--start 1 --end 10001] [--json out.json] [--csv out.csv]
  python -m ethtools.main portfolio --wallets config/wallets.yaml [--wallet 0x...:Label] [--json out.json]
"""

import argparse
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

from price_cache.pricing_cache import PriceCache

from .aggregator import PortfolioTracker
from .blockchain_utils import LedgerClient
from .config import ConfigurationError, get_rpc_url, load_token_registry, load_wallets, parse_wallet_arg
from .export import export_snapshot_csv, export_snapshot_json, export_valuation_csv, export_valuation_json
from .report import display_portfolio, display_snapshot
from .snapshot import NFTSnapshotTool


def die(msg: str, code: int = 1):
    print(f"[ERROR] {msg}", file=sys.stderr)
    sys.exit(code)


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value}") from None


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ethtools", description="Read-only Ethereum holder and portfolio tools")
    p.add_argument("--rpc", help="RPC URL (defaults to ETH_RPC_URL or ALCHEMY_API_KEY)")
    p.add_argument("--workers", type=int, default=1, help="Parallel ledger readers (default: sequential)")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("snapshot", help="Tally holders of an ERC-721 collection")
    s.add_argument("--contract", required=True, help="ERC-721 contract address")
    s.add_argument("--start", type=int, help="First token id (default 0)")
    s.add_argument("--end", type=int, help="End token id, exclusive (default totalSupply)")
    s.add_argument("--top", type=int, default=20, help="Holders shown in the report")
    s.add_argument("--airdrop-min", type=int, help="Report holders with at least this many tokens")
    s.add_argument("--json", help="Write snapshot JSON to this file")
    s.add_argument("--csv", help="Write snapshot CSV to this file")

    w = sub.add_parser("portfolio", help="Aggregate and value balances across wallets")
    w.add_argument("--wallets", type=Path, help="YAML file with a 'wallets' list")
    w.add_argument("--wallet", action="append", default=[], help="ADDRESS or ADDRESS:LABEL (repeatable)")
    w.add_argument("--tokens", type=Path, help="YAML token registry (default config/tokens.yaml)")
    w.add_argument("--currency", default="usd", help="Fiat currency for valuation")
    w.add_argument("--dust", type=_decimal, default=None, help="Ignore balances at or below this amount")
    w.add_argument("--json", help="Write valuation JSON to this file")
    w.add_argument("--csv", help="Write valuation CSV to this file")
    return p


def run_snapshot(args, ledger) -> None:
    tool = NFTSnapshotTool(ledger, args.contract)
    snapshot = tool.create_snapshot(start=args.start, end=args.end, workers=args.workers)
    display_snapshot(snapshot, top=args.top)
    if args.json:
        export_snapshot_json(snapshot, args.json)
    if args.csv:
        export_snapshot_csv(snapshot, args.csv)
    if args.airdrop_min is not None:
        eligible = snapshot.airdrop_eligible(args.airdrop_min)
        print(f"\nAddresses eligible for airdrop ({args.airdrop_min}+ tokens): {len(eligible)}")


def run_portfolio(args, ledger) -> None:
    wallets = load_wallets(args.wallets) if args.wallets else []
    wallets += [parse_wallet_arg(v) for v in args.wallet]
    if not wallets:
        raise ConfigurationError("No wallets given; use --wallets FILE or --wallet ADDRESS")

    tokens = load_token_registry(args.tokens)
    kwargs = {"dust_threshold": args.dust} if args.dust is not None else {}
    tracker = PortfolioTracker(ledger, tokens=tokens, **kwargs)
    for address, label in wallets:
        tracker.add_wallet(address, label)

    id_map = {sym: t.coingecko_id for sym, t in tokens.items() if t.coingecko_id}
    prices = PriceCache(id_map=id_map, vs_currency=args.currency.lower())

    portfolio = tracker.aggregate_portfolio(workers=args.workers)
    prices.prime(portfolio.balances.keys())
    value = tracker.calculate_portfolio_value(prices, currency=prices.vs_currency)
    display_portfolio(value, portfolio)
    if args.json:
        export_valuation_json(value, portfolio, args.json)
    if args.csv:
        export_valuation_csv(value, args.csv)


def main(argv=None):
    args = build_parser().parse_args(argv)
    try:
        ledger = LedgerClient.from_url(get_rpc_url(args.rpc))
        if args.command == "snapshot":
            run_snapshot(args, ledger)
        else:
            run_portfolio(args, ledger)
    except ConfigurationError as e:
        die(str(e))


if __name__ == "__main__":
    main()
