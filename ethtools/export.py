import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pandas as pd

from .models import AggregatedPortfolio, HolderSnapshot, PortfolioValue, format_decimal


def _write(content: str, filename: Optional[str], label: str) -> str:
    if not filename:
        return content
    path = Path(filename)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        print(f"\n💾 {label} exported to {path}")
    except OSError as e:
        print(f"[ERROR] failed to write {path}: {e}", file=sys.stderr)
        print(f"\n📋 {label} data:\n{content}")
    return content


# ---------- Snapshot ----------
def snapshot_to_dict(snapshot: HolderSnapshot) -> dict:
    return {
        "timestamp": snapshot.timestamp,
        "contractAddress": snapshot.contract,
        "totalHolders": snapshot.total_holders,
        "totalTokens": snapshot.total_tokens,
        "holders": dict(snapshot.ranked()),
    }


def export_snapshot_json(snapshot: HolderSnapshot, filename: Optional[str] = None) -> str:
    content = json.dumps(snapshot_to_dict(snapshot), indent=2)
    return _write(content, filename, "Snapshot")


def export_snapshot_csv(snapshot: HolderSnapshot, filename: Optional[str] = None) -> str:
    df = pd.DataFrame(snapshot.ranked(), columns=["Address", "Token Count"])
    content = df.to_csv(index=False, lineterminator="\n")
    return _write(content, filename, "CSV")


# ---------- Portfolio ----------
def valuation_to_dict(value: PortfolioValue, portfolio: AggregatedPortfolio) -> dict:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "currency": value.currency,
        "totalValue": format_decimal(value.total_value),
        "assets": [
            {
                "symbol": r.symbol,
                "balance": format_decimal(r.balance),
                "price": format_decimal(r.price),
                "value": format_decimal(r.value),
                "percentage": f"{r.percentage:.2f}",
            }
            for r in value.rows
        ],
        "wallets": [
            {
                "address": w.address,
                "label": w.label,
                "balances": {s: b.balance for s, b in w.balances.items()},
            }
            for w in portfolio.wallets
        ],
    }


def export_valuation_json(value: PortfolioValue, portfolio: AggregatedPortfolio, filename: Optional[str] = None) -> str:
    content = json.dumps(valuation_to_dict(value, portfolio), indent=2)
    return _write(content, filename, "Portfolio")


def export_valuation_csv(value: PortfolioValue, filename: Optional[str] = None) -> str:
    df = pd.DataFrame(
        [
            {
                "symbol": r.symbol,
                "balance": format_decimal(r.balance),
                "price": format_decimal(r.price),
                "value": format_decimal(r.value),
                "percentage": f"{r.percentage:.2f}",
            }
            for r in value.rows
        ],
        columns=["symbol", "balance", "price", "value", "percentage"],
    )
    content = df.to_csv(index=False, lineterminator="\n")
    return _write(content, filename, "CSV")
