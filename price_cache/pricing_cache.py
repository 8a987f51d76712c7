"""
Spot prices from CoinGecko's /simple/price endpoint.

CoinGeckoClient handles key headers, request pacing and retries.
PriceCache maps token symbols to prices for a single run.
"""

from __future__ import annotations
import os, time, random, threading
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple

import requests
import yaml

# ---------- Configuration ----------
COINGECKO_IDS = {
    "ETH": "ethereum",
    "USDC": "usd-coin",
    "USDT": "tether",
    "WETH": "weth",
    "UNI": "uniswap",
    "LINK": "chainlink",
    "AAVE": "aave",
    "COMP": "compound-governance-token",
}

CG_PRO_BASE = "https://pro-api.coingecko.com/api/v3"
CG_PUBLIC_BASE = "https://api.coingecko.com/api/v3"


class PriceLookupError(LookupError):
    """The oracle answered but had no price for the requested id."""


# api.yaml key -> environment variable underneath it
_CG_SETTINGS = {
    "coingecko_pro_api_key": "COINGECKO_PRO_API_KEY",
    "coingecko_demo_api_key": "COINGECKO_DEMO_API_KEY",
    "coingecko_min_interval_sec": "COINGECKO_MIN_INTERVAL_SEC",
}


def _read_api_yaml(cfg_path: Path) -> dict:
    if not cfg_path.exists():
        return {}
    try:
        data = yaml.safe_load(cfg_path.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        print(f"[warn] failed to read {cfg_path}: {e}")
        return {}
    if not isinstance(data, dict):
        print(f"[warn] {cfg_path} is not a mapping; using environment only")
        return {}
    return data


def _load_cg_config(cfg_path: Optional[Path] = None) -> Tuple[str, str, Optional[float]]:
    """(pro_key, demo_key, min_interval). A key present in api.yaml beats its env var."""
    if cfg_path is None:
        cfg_path = Path(__file__).resolve().parent.parent / "config" / "api.yaml"
    file_cfg = _read_api_yaml(Path(cfg_path))

    settings = {}
    for key, env_name in _CG_SETTINGS.items():
        value = file_cfg[key] if key in file_cfg else os.getenv(env_name)
        settings[key] = "" if value is None else str(value).strip()

    interval = settings["coingecko_min_interval_sec"]
    min_interval = None
    if interval:
        try:
            min_interval = float(interval)
        except ValueError:
            print(f"[warn] ignoring bad CoinGecko min interval {interval!r}")
    return settings["coingecko_pro_api_key"], settings["coingecko_demo_api_key"], min_interval


# ---------- Oracle client ----------
class CoinGeckoClient:
    def __init__(
        self,
        pro_key: Optional[str] = None,
        demo_key: Optional[str] = None,
        min_interval: Optional[float] = None,
        max_tries: int = 6,
        timeout: float = 45,
        session: Optional[requests.Session] = None,
    ):
        if pro_key is None and demo_key is None:
            pro_key, demo_key, cfg_interval = _load_cg_config()
            if min_interval is None:
                min_interval = cfg_interval
        self.pro_key = pro_key or ""
        self.demo_key = demo_key or ""
        self.base = CG_PRO_BASE if self.pro_key else CG_PUBLIC_BASE
        # Demo ≈ 30/min → ~2.2s; Pro Analyst 250/min → ~0.24s.
        self.min_interval = min_interval if min_interval is not None else (0.24 if self.pro_key else 2.2)
        self.max_tries = max_tries
        self.timeout = timeout
        self.session = session or requests.Session()
        self._last_call = 0.0
        self._pace_lock = threading.Lock()

    def _rate_limit(self) -> None:
        with self._pace_lock:
            delay = max(0.0, self.min_interval - (time.time() - self._last_call))
            if delay > 0:
                time.sleep(delay)
            self._last_call = time.time()

    def _headers(self) -> dict:
        if self.pro_key:
            return {"x-cg-pro-api-key": self.pro_key}
        if self.demo_key:
            return {"x-cg-demo-api-key": self.demo_key}
        return {}

    def _get_json(self, url: str, params: Optional[dict] = None) -> dict:
        headers = self._headers()
        for attempt in range(self.max_tries):
            self._rate_limit()
            try:
                r = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            except requests.RequestException:
                sleep_s = min(60, 2 ** attempt + random.random())
                print(f"[net] GET {url} attempt {attempt+1} failed; sleeping {sleep_s:.1f}s")
                time.sleep(sleep_s)
                continue

            if r.status_code == 429 or 500 <= r.status_code < 600:
                sleep_s = min(60, 2 ** attempt + random.random())
                print(f"[rate] {r.status_code} on {url}; sleeping {sleep_s:.1f}s and retrying")
                time.sleep(sleep_s)
                continue

            r.raise_for_status()
            return r.json()

        raise requests.HTTPError(f"GET failed after retries: {url}")

    def get_prices(self, coin_ids: Iterable[str], vs_currency: str = "usd") -> Dict[str, float]:
        ids = sorted(set(coin_ids))
        if not ids:
            return {}
        data = self._get_json(
            f"{self.base}/simple/price",
            params={"ids": ",".join(ids), "vs_currencies": vs_currency},
        )
        if not isinstance(data, dict):
            raise PriceLookupError(f"unexpected /simple/price payload ({type(data).__name__})")
        out: Dict[str, float] = {}
        for cid in ids:
            entry = data.get(cid)
            if isinstance(entry, dict) and entry.get(vs_currency) is not None:
                out[cid] = float(entry[vs_currency])
        return out

    def get_price(self, coin_id: str, vs_currency: str = "usd") -> float:
        prices = self.get_prices([coin_id], vs_currency)
        if coin_id not in prices:
            raise PriceLookupError(f"no {vs_currency} price for '{coin_id}'")
        return prices[coin_id]


# ---------- Per-run cache ----------
class PriceCache:
    """
    symbol -> fiat price for the lifetime of one run.

    Failed lookups return 0.0 and are not stored, so a later call can retry.
    """

    def __init__(
        self,
        oracle=None,
        id_map: Optional[Mapping[str, str]] = None,
        vs_currency: str = "usd",
    ):
        self.oracle = oracle if oracle is not None else CoinGeckoClient()
        self.id_map = dict(COINGECKO_IDS)
        if id_map:
            self.id_map.update(id_map)
        self.vs_currency = vs_currency
        self._prices: Dict[str, float] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._prices

    def __len__(self) -> int:
        return len(self._prices)

    def coin_id(self, symbol: str) -> str:
        return self.id_map.get(symbol) or symbol.lower()

    def _lock_for(self, symbol: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(symbol)
            if lock is None:
                lock = self._locks[symbol] = threading.Lock()
            return lock

    def get_price(self, symbol: str) -> float:
        if symbol in self._prices:
            return self._prices[symbol]
        with self._lock_for(symbol):
            # another thread may have filled it while we waited
            if symbol in self._prices:
                return self._prices[symbol]
            cid = self.coin_id(symbol)
            try:
                price = float(self.oracle.get_price(cid, self.vs_currency))
            except (requests.RequestException, PriceLookupError, ValueError, KeyError, TypeError) as e:
                print(f"[warn] failed to fetch price for {symbol} ({cid}): {e}")
                return 0.0
            self._prices[symbol] = price
            return price

    def prime(self, symbols: Iterable[str]) -> int:
        """Warm the cache with one batched request. Returns how many were added."""
        wanted = {s: self.coin_id(s) for s in symbols if s not in self._prices}
        if not wanted:
            return 0
        try:
            prices = self.oracle.get_prices(wanted.values(), self.vs_currency)
        except (requests.RequestException, PriceLookupError, ValueError, KeyError, TypeError) as e:
            print(f"[warn] batched price lookup failed: {e}")
            return 0
        added = 0
        for symbol, cid in wanted.items():
            if cid in prices:
                with self._lock_for(symbol):
                    if symbol not in self._prices:
                        self._prices[symbol] = float(prices[cid])
                        added += 1
        print(f"[cache] primed {added}/{len(wanted)} prices")
        return added
