"""
ERC-721 holder snapshot.

Walks token ids in [start, end) and asks the collection for ownerOf(id).
Ids that revert (never minted, burned) are skipped and recorded; they never
abort the scan. The result is a holder -> token count tally.
"""

from __future__ import annotations
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Tuple

from .blockchain_utils import LedgerCallError
from .config import ERC721_ABI, PROGRESS_EVERY, ConfigurationError, normalize_address
from .models import HolderSnapshot, OwnerResult, Resolved, Unresolved


def tally_outcomes(outcomes: Iterable[OwnerResult]) -> Tuple[Counter, List[int]]:
    holders: Counter = Counter()
    unresolved: List[int] = []
    for outcome in outcomes:
        if isinstance(outcome, Resolved):
            holders[outcome.owner] += 1
        else:
            unresolved.append(outcome.token_id)
    return holders, unresolved


def split_range(start: int, end: int, parts: int) -> List[Tuple[int, int]]:
    """Contiguous, ascending sub-ranges covering [start, end)."""
    size = end - start
    if size <= 0:
        return []
    parts = max(1, min(parts, size))
    step, extra = divmod(size, parts)
    ranges = []
    lo = start
    for i in range(parts):
        hi = lo + step + (1 if i < extra else 0)
        ranges.append((lo, hi))
        lo = hi
    return ranges


class NFTSnapshotTool:
    def __init__(self, ledger, contract_address: str):
        self.ledger = ledger
        self.contract_address = normalize_address(contract_address)

    def get_total_supply(self) -> int:
        return int(self.ledger.call_view(self.contract_address, ERC721_ABI, "totalSupply"))

    def resolve_owner(self, token_id: int) -> OwnerResult:
        try:
            owner = self.ledger.call_view(self.contract_address, ERC721_ABI, "ownerOf", token_id)
        except LedgerCallError as e:
            return Unresolved(token_id, str(e))
        try:
            return Resolved(token_id, normalize_address(owner))
        except ConfigurationError:
            return Unresolved(token_id, f"bad owner {owner!r}")

    def resolve_range(
        self,
        start: Optional[int] = None,
        end: Optional[int] = None,
        total_supply_hint: Optional[int] = None,
    ) -> Tuple[int, int, Optional[int]]:
        total_supply = total_supply_hint
        if total_supply is None:
            try:
                total_supply = self.get_total_supply()
                print(f"[info] total supply: {total_supply}")
            except LedgerCallError as e:
                print(f"[warn] failed to get total supply: {e}")
                if end is None:
                    raise ConfigurationError(
                        "totalSupply() unavailable; provide an explicit end token id"
                    ) from e

        start = 0 if start is None else int(start)
        end = int(total_supply) if end is None else int(end)
        if start < 0 or start > end:
            raise ConfigurationError(f"Bad token range [{start}, {end})")
        return start, end, total_supply

    def _scan(self, start: int, end: int) -> Tuple[Counter, List[int]]:
        return tally_outcomes(self._iter_outcomes(start, end))

    def _iter_outcomes(self, start: int, end: int):
        for token_id in range(start, end):
            if token_id % PROGRESS_EVERY == 0:
                pct = token_id / end * 100 if end else 100.0
                print(f"Progress: {token_id}/{end} ({pct:.1f}%)")
            outcome = self.resolve_owner(token_id)
            if isinstance(outcome, Unresolved):
                print(f"[warn] token {token_id} may not exist or is burned")
            yield outcome

    def create_snapshot(
        self,
        start: Optional[int] = None,
        end: Optional[int] = None,
        total_supply_hint: Optional[int] = None,
        workers: int = 1,
    ) -> HolderSnapshot:
        print("🔄 Starting NFT snapshot...")
        start, end, total_supply = self.resolve_range(start, end, total_supply_hint)
        print(f"🔍 Scanning tokens {start} to {end - 1}...")

        if workers <= 1:
            holders, unresolved = self._scan(start, end)
        else:
            holders, unresolved = Counter(), []
            chunks = split_range(start, end, workers)
            with ThreadPoolExecutor(max_workers=workers) as pool:
                # map() returns in submission order, so unresolved stays ascending
                for part_holders, part_unresolved in pool.map(lambda r: self._scan(*r), chunks):
                    holders.update(part_holders)
                    unresolved.extend(part_unresolved)

        snapshot = HolderSnapshot(
            contract=self.contract_address,
            start=start,
            end=end,
            total_supply=total_supply,
            holders=dict(holders),
            unresolved=unresolved,
        )
        print(
            f"✅ Resolved {snapshot.total_tokens} tokens across {snapshot.total_holders} holders "
            f"({len(unresolved)} unresolved)"
        )
        return snapshot
