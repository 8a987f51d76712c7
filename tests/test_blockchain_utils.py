from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError

from ethtools.blockchain_utils import LedgerCallError, LedgerClient, connect_rpc
from ethtools.config import ERC20_ABI, ERC721_ABI, ConfigurationError

TOKEN = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
WALLET = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"


class LedgerClientTests(unittest.TestCase):
    def setUp(self) -> None:
        self.w3 = MagicMock()
        self.contract = self.w3.eth.contract.return_value
        self.client = LedgerClient(self.w3)

    def test_call_view_checksums_address_arguments(self) -> None:
        self.contract.functions.balanceOf.return_value.call.return_value = 42

        result = self.client.call_view(TOKEN, ERC20_ABI, "balanceOf", WALLET)

        self.assertEqual(result, 42)
        self.contract.functions.balanceOf.assert_called_once_with(Web3.to_checksum_address(WALLET))
        _, kwargs = self.w3.eth.contract.call_args
        self.assertEqual(kwargs["address"], Web3.to_checksum_address(TOKEN))

    def test_integer_arguments_pass_through(self) -> None:
        self.contract.functions.ownerOf.return_value.call.return_value = WALLET

        self.client.call_view(TOKEN, ERC721_ABI, "ownerOf", 7)

        self.contract.functions.ownerOf.assert_called_once_with(7)

    def test_revert_becomes_ledger_call_error(self) -> None:
        self.contract.functions.ownerOf.return_value.call.side_effect = ContractLogicError("execution reverted")

        with self.assertRaises(LedgerCallError):
            self.client.call_view(TOKEN, ERC721_ABI, "ownerOf", 1)

    def test_transport_failure_becomes_ledger_call_error(self) -> None:
        self.w3.eth.get_balance.side_effect = requests.ConnectionError("connection refused")

        with self.assertRaises(LedgerCallError):
            self.client.get_native_balance(WALLET)

    def test_native_balance_is_int_wei(self) -> None:
        self.w3.eth.get_balance.return_value = 10 ** 18

        self.assertEqual(self.client.get_native_balance(WALLET), 10 ** 18)
        self.w3.eth.get_balance.assert_called_once_with(Web3.to_checksum_address(WALLET))

    def test_contract_objects_are_reused(self) -> None:
        self.contract.functions.balanceOf.return_value.call.return_value = 0
        self.client.call_view(TOKEN, ERC20_ABI, "balanceOf", WALLET)
        self.client.call_view(TOKEN.upper().replace("0X", "0x"), ERC20_ABI, "balanceOf", WALLET)
        self.assertEqual(self.w3.eth.contract.call_count, 1)


class ConnectRpcTests(unittest.TestCase):
    def test_unreachable_node_is_configuration_error(self) -> None:
        with patch("ethtools.blockchain_utils.Web3") as web3_cls:
            web3_cls.return_value.is_connected.return_value = False
            with self.assertRaises(ConfigurationError):
                connect_rpc("http://127.0.0.1:1")


if __name__ == "__main__":
    unittest.main()
