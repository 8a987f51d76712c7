import requests
from eth_utils import is_address
from web3 import Web3
from web3.exceptions import Web3Exception

from .config import ConfigurationError

# web3 surfaces reverts, RPC errors and transport failures through these
_CALL_ERRORS = (Web3Exception, requests.RequestException, ValueError, OSError)


class LedgerCallError(RuntimeError):
    """A read against the node reverted or the node was unavailable."""


def connect_rpc(rpc_url, timeout=60):
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
    if not w3.is_connected():
        raise ConfigurationError(f"RPC connection failed: {rpc_url}")
    return w3


class LedgerClient:
    """Read-only access to one node: native balances and view calls."""

    def __init__(self, w3: Web3):
        self.w3 = w3
        self._contracts = {}

    @classmethod
    def from_url(cls, rpc_url: str) -> "LedgerClient":
        return cls(connect_rpc(rpc_url))

    def contract(self, address: str, abi):
        key = (address.lower(), id(abi))
        c = self._contracts.get(key)
        if c is None:
            c = self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
            self._contracts[key] = c
        return c

    def get_native_balance(self, address: str) -> int:
        try:
            return int(self.w3.eth.get_balance(Web3.to_checksum_address(address)))
        except _CALL_ERRORS as e:
            raise LedgerCallError(f"get_balance({address}) failed: {e}") from e

    def call_view(self, contract_address: str, abi, function_name: str, *args):
        # web3 only accepts checksummed address arguments
        args = tuple(Web3.to_checksum_address(a) if isinstance(a, str) and is_address(a) else a for a in args)
        try:
            fn = getattr(self.contract(contract_address, abi).functions, function_name)
            return fn(*args).call()
        except _CALL_ERRORS as e:
            raise LedgerCallError(f"{function_name}{args} on {contract_address} failed: {e}") from e
