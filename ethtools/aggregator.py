from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple

from .blockchain_utils import LedgerCallError
from .config import DEFAULT_TOKENS, DUST_THRESHOLD, ERC20_ABI, normalize_address
from .models import AggregatedPortfolio, TokenBalance, TokenDescriptor, WalletBalance, to_units
from .valuation import valuate


class PortfolioTracker:
    """
    Collects native + ERC-20 balances for a list of wallets and sums them
    per symbol. One instance per run; nothing is shared between instances.
    """

    def __init__(
        self,
        ledger,
        tokens: Optional[Mapping[str, TokenDescriptor]] = None,
        custom_tokens: Optional[Mapping[str, TokenDescriptor]] = None,
        dust_threshold: Decimal = DUST_THRESHOLD,
    ):
        self.ledger = ledger
        self.tokens: Dict[str, TokenDescriptor] = dict(tokens if tokens is not None else DEFAULT_TOKENS)
        if custom_tokens:
            self.tokens.update(custom_tokens)
        self.dust_threshold = Decimal(dust_threshold)
        self.wallets: List[Tuple[str, str]] = []
        self.portfolio: Optional[AggregatedPortfolio] = None

    def add_wallet(self, address: str, label: str = "") -> None:
        address = normalize_address(address)
        if any(addr == address for addr, _ in self.wallets):
            print(f"[warn] wallet {address} already added; skipping")
            return
        self.wallets.append((address, label))

    # ---------- single reads ----------
    def get_native_balance(self, address: str) -> int:
        try:
            return self.ledger.get_native_balance(address)
        except LedgerCallError as e:
            print(f"[warn] failed to get native balance for {address}: {e}")
            return 0

    def get_token_balance(self, token: TokenDescriptor, address: str) -> int:
        try:
            return int(self.ledger.call_view(token.address, ERC20_ABI, "balanceOf", address))
        except LedgerCallError as e:
            print(f"[warn] failed to get {token.symbol} balance for {address}: {e}")
            return 0

    def _is_significant(self, raw: int, decimals: int) -> bool:
        return raw > 0 and to_units(raw, decimals) > self.dust_threshold

    def get_wallet_balances(self, address: str) -> Dict[str, TokenBalance]:
        balances: Dict[str, TokenBalance] = {}
        for symbol, token in self.tokens.items():
            if token.is_native:
                raw = self.get_native_balance(address)
            else:
                raw = self.get_token_balance(token, address)
            if self._is_significant(raw, token.decimals):
                balances[symbol] = TokenBalance(symbol, raw, token.decimals)
        return balances

    # ---------- aggregation ----------
    def _scan_wallet(self, wallet: Tuple[str, str]) -> WalletBalance:
        address, label = wallet
        print(f"📍 Scanning {label or address}...")
        return WalletBalance(address=address, label=label, balances=self.get_wallet_balances(address))

    def aggregate_portfolio(self, workers: int = 1) -> AggregatedPortfolio:
        print("Scanning wallets for token balances...\n")
        if workers <= 1:
            scanned = [self._scan_wallet(w) for w in self.wallets]
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                scanned = list(pool.map(self._scan_wallet, self.wallets))

        # merge in wallet-addition order regardless of how they were fetched
        portfolio = AggregatedPortfolio()
        for wallet in scanned:
            portfolio.add_wallet(wallet)
        self.portfolio = portfolio
        return portfolio

    def calculate_portfolio_value(self, price_cache, workers: int = 1, currency: Optional[str] = None):
        if self.portfolio is None:
            self.aggregate_portfolio(workers=workers)
        print("\nCalculating portfolio value...\n")
        return valuate(self.portfolio, price_cache, currency=currency)
