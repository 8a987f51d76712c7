from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Context, Decimal
from typing import Dict, List, Optional, Tuple, Union

# uint256 needs 78 digits; leave room for price multiplication
DECIMAL_CTX = Context(prec=120)


def to_units(raw: int, decimals: int) -> Decimal:
    return Decimal(int(raw)).scaleb(-int(decimals), context=DECIMAL_CTX)


def format_decimal(value: Decimal) -> str:
    """Plain notation, no exponent, no trailing zeros."""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class TokenDescriptor:
    symbol: str
    address: Optional[str]
    decimals: int
    coingecko_id: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return self.address is None


# ---------- Snapshot ----------
@dataclass(frozen=True)
class Resolved:
    token_id: int
    owner: str


@dataclass(frozen=True)
class Unresolved:
    token_id: int
    reason: str = ""


OwnerResult = Union[Resolved, Unresolved]


@dataclass
class HolderSnapshot:
    contract: str
    start: int
    end: int
    total_supply: Optional[int]
    holders: Dict[str, int] = field(default_factory=dict)
    unresolved: List[int] = field(default_factory=list)
    timestamp: str = field(default_factory=_now_iso)

    @property
    def total_holders(self) -> int:
        return len(self.holders)

    @property
    def total_tokens(self) -> int:
        return sum(self.holders.values())

    @property
    def average_per_holder(self) -> float:
        if not self.holders:
            return 0.0
        return self.total_tokens / self.total_holders

    def ranked(self) -> List[Tuple[str, int]]:
        """Holders by count descending, address ascending on ties."""
        return sorted(self.holders.items(), key=lambda kv: (-kv[1], kv[0]))

    def top(self, n: int = 20) -> List[Tuple[str, int]]:
        return self.ranked()[:n]

    def airdrop_eligible(self, min_tokens: int = 1) -> List[str]:
        return [addr for addr, count in self.ranked() if count >= min_tokens]


# ---------- Portfolio ----------
@dataclass(frozen=True)
class TokenBalance:
    symbol: str
    raw: int
    decimals: int

    @property
    def amount(self) -> Decimal:
        return to_units(self.raw, self.decimals)

    @property
    def balance(self) -> str:
        return format_decimal(self.amount)

    def __add__(self, other: "TokenBalance") -> "TokenBalance":
        if other.symbol != self.symbol or other.decimals != self.decimals:
            raise ValueError(f"cannot add {other.symbol}/{other.decimals} to {self.symbol}/{self.decimals}")
        return TokenBalance(self.symbol, self.raw + other.raw, self.decimals)


@dataclass
class WalletBalance:
    address: str
    label: str = ""
    balances: Dict[str, TokenBalance] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.label or self.address


@dataclass
class AggregatedPortfolio:
    balances: Dict[str, TokenBalance] = field(default_factory=dict)
    wallets: List[WalletBalance] = field(default_factory=list)

    def add_wallet(self, wallet: WalletBalance) -> None:
        self.wallets.append(wallet)
        for symbol, bal in wallet.balances.items():
            if symbol in self.balances:
                self.balances[symbol] = self.balances[symbol] + bal
            else:
                self.balances[symbol] = bal


@dataclass(frozen=True)
class ValuationRow:
    symbol: str
    balance: Decimal
    price: Decimal
    value: Decimal
    percentage: Decimal = Decimal(0)


@dataclass
class PortfolioValue:
    total_value: Decimal
    rows: List[ValuationRow]
    currency: str = "usd"
