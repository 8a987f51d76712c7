import os
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from eth_utils import is_address

from .models import TokenDescriptor


class ConfigurationError(ValueError):
    """Raised when a run cannot start from the configuration it was given."""


# project root is one level up from ethtools/
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_TOKENS_PATH = PROJECT_ROOT / "config" / "tokens.yaml"

DUST_THRESHOLD = Decimal("0.001")
PROGRESS_EVERY = 100

ALCHEMY_MAINNET = "https://eth-mainnet.g.alchemy.com/v2/{key}"

# --------- ABIs ----------
ERC20_ABI = [
    {"constant":True,"inputs":[{"name":"account","type":"address"}],"name":"balanceOf","outputs":[{"name":"","type":"uint256"}],"stateMutability":"view","type":"function"},
    {"constant":True,"inputs":[],"name":"symbol","outputs":[{"name":"","type":"string"}],"stateMutability":"view","type":"function"},
    {"constant":True,"inputs":[],"name":"decimals","outputs":[{"name":"","type":"uint8"}],"stateMutability":"view","type":"function"},
]

ERC721_ABI = [
    {"inputs":[{"internalType":"uint256","name":"tokenId","type":"uint256"}],
     "name":"ownerOf","outputs":[{"internalType":"address","name":"","type":"address"}],
     "stateMutability":"view","type":"function"},
    {"inputs":[],"name":"totalSupply","outputs":[{"internalType":"uint256","name":"","type":"uint256"}],
     "stateMutability":"view","type":"function"},
]

# --------- Token registry ----------
NATIVE_TOKEN = TokenDescriptor(symbol="ETH", address=None, decimals=18, coingecko_id="ethereum")

DEFAULT_TOKENS: Dict[str, TokenDescriptor] = {
    "ETH": NATIVE_TOKEN,
    "USDC": TokenDescriptor("USDC", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48", 6, "usd-coin"),
    "USDT": TokenDescriptor("USDT", "0xdac17f958d2ee523a2206206994597c13d831ec7", 6, "tether"),
    "WETH": TokenDescriptor("WETH", "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2", 18, "weth"),
    "UNI": TokenDescriptor("UNI", "0x1f9840a85d5af5bf1d1762f925bdaddc4201f984", 18, "uniswap"),
    "LINK": TokenDescriptor("LINK", "0x514910771af9ca656af840dff83e8264ecf986ca", 18, "chainlink"),
    "AAVE": TokenDescriptor("AAVE", "0x7fc66500c84a76ad7e9c93437bfc5ac33e2ddae9", 18, "aave"),
    "COMP": TokenDescriptor("COMP", "0xc00e94cb662c3520282e6f5717214004a7f26888", 18, "compound-governance-token"),
}


def normalize_address(address: str) -> str:
    """Lowercase form used for every comparison and dict key."""
    if not isinstance(address, str):
        raise ConfigurationError(f"Invalid address: {address!r}")
    # case-insensitive: a bad checksum is not a different account
    address = address.strip().lower()
    if not is_address(address):
        raise ConfigurationError(f"Invalid address: {address!r}")
    return address


def get_rpc_url(rpc_url: Optional[str] = None, api_key: Optional[str] = None) -> str:
    """
    Resolve the mainnet RPC endpoint.

    Precedence:
      1) explicit rpc_url
      2) ETH_RPC_URL env var
      3) Alchemy URL from api_key / ALCHEMY_API_KEY
    """
    if rpc_url:
        return rpc_url
    env_url = os.getenv("ETH_RPC_URL", "").strip()
    if env_url:
        return env_url
    key = api_key or os.getenv("ALCHEMY_API_KEY", "").strip()
    if not key:
        raise ConfigurationError(
            "No RPC endpoint. Pass --rpc, set ETH_RPC_URL, or set ALCHEMY_API_KEY."
        )
    return ALCHEMY_MAINNET.format(key=key)


def _load_yaml(path: Path) -> dict:
    try:
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: expected a mapping at top level")
    return data


def load_token_registry(path: Optional[Path] = None) -> Dict[str, TokenDescriptor]:
    """
    Default tokens merged with tokens from YAML (custom entries win).

    tokens:
      USDC: {address: 0x..., decimals: 6, coingecko_id: usd-coin}
      ETH: {native: true, decimals: 18, coingecko_id: ethereum}

    Only the chain asset may omit the address, and it must say native: true.
    """
    tokens = dict(DEFAULT_TOKENS)
    if path is None:
        path = DEFAULT_TOKENS_PATH
        if not path.exists():
            return tokens
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Token registry not found: {path}")

    raw = _load_yaml(path).get("tokens") or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path}: 'tokens' must be a mapping")
    for symbol, meta in raw.items():
        if not isinstance(meta, dict):
            raise ConfigurationError(f"{path}: entry for {symbol} must be a mapping")
        addr = meta.get("address")
        native = bool(meta.get("native", False))
        if native and addr:
            raise ConfigurationError(f"{path}: native token {symbol} cannot have an address")
        if not native and not addr:
            raise ConfigurationError(f"{path}: {symbol} has no address (set 'native: true' for the chain asset)")
        try:
            decimals = int(meta.get("decimals", 18))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{path}: bad decimals for {symbol}") from e
        if native:
            # one native asset per registry; a new one replaces the default
            tokens = {s: t for s, t in tokens.items() if not t.is_native}
        tokens[str(symbol)] = TokenDescriptor(
            symbol=str(symbol),
            address=normalize_address(addr) if addr else None,
            decimals=decimals,
            coingecko_id=meta.get("coingecko_id"),
        )
    return tokens


def parse_wallet_arg(value: str) -> Tuple[str, str]:
    """ADDRESS or ADDRESS:LABEL from the command line."""
    address, _, label = value.partition(":")
    return normalize_address(address), label.strip()


def load_wallets(path: Path) -> List[Tuple[str, str]]:
    """
    wallets:
      - address: 0x...
        label: Main Wallet
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Wallet file not found: {path}")
    entries = _load_yaml(path).get("wallets") or []
    if not isinstance(entries, list):
        raise ConfigurationError(f"{path}: 'wallets' must be a list")

    wallets = []
    for entry in entries:
        if isinstance(entry, str):
            wallets.append((normalize_address(entry), ""))
        elif isinstance(entry, dict) and entry.get("address"):
            wallets.append((normalize_address(entry["address"]), str(entry.get("label") or "")))
        else:
            raise ConfigurationError(f"{path}: bad wallet entry {entry!r}")
    return wallets
