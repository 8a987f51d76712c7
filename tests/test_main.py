from __future__ import annotations

import contextlib
import io
import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from ethtools import main as cli
from fakes import NFT, TOKA, X, Y, FakeLedger, FakeOracle
from price_cache.pricing_cache import PriceCache


class CliTests(unittest.TestCase):
    def test_snapshot_command_exports_json_and_csv(self) -> None:
        ledger = FakeLedger(owners={0: X, 1: Y, 2: X}, total_supply=3)
        with tempfile.TemporaryDirectory() as tmp:
            json_path = Path(tmp) / "snap.json"
            csv_path = Path(tmp) / "snap.csv"
            out = io.StringIO()
            with patch.object(cli.LedgerClient, "from_url", return_value=ledger), contextlib.redirect_stdout(out):
                cli.main([
                    "--rpc", "http://node", "snapshot", "--contract", NFT,
                    "--json", str(json_path), "--csv", str(csv_path), "--airdrop-min", "2",
                ])

            data = json.loads(json_path.read_text())
            self.assertEqual(data["holders"], {X: 2, Y: 1})
            self.assertTrue(csv_path.read_text().startswith("Address,Token Count"))
        self.assertIn("eligible for airdrop (2+ tokens): 1", out.getvalue())

    def test_portfolio_command_values_wallets(self) -> None:
        ledger = FakeLedger(native={X: 10 ** 18}, balances={(TOKA, Y): 3 * 10 ** 18})
        oracle = FakeOracle({"ethereum": 2000.0, "toka-coin": 1.0})
        with tempfile.TemporaryDirectory() as tmp:
            tokens = Path(tmp) / "tokens.yaml"
            tokens.write_text(f"tokens:\n  TOKA:\n    address: \"{TOKA}\"\n    decimals: 18\n    coingecko_id: toka-coin\n")
            json_path = Path(tmp) / "value.json"

            def cache_factory(**kwargs):
                return PriceCache(oracle=oracle, **kwargs)

            with patch.object(cli.LedgerClient, "from_url", return_value=ledger), patch.object(
                cli, "PriceCache", side_effect=cache_factory
            ), contextlib.redirect_stdout(io.StringIO()):
                cli.main([
                    "--rpc", "http://node", "portfolio", "--tokens", str(tokens),
                    "--wallet", f"{X}:Main", "--wallet", Y, "--json", str(json_path),
                ])

            data = json.loads(json_path.read_text())

        self.assertEqual(data["totalValue"], "2003")
        self.assertEqual([a["symbol"] for a in data["assets"]], ["ETH", "TOKA"])
        self.assertEqual(data["wallets"][0]["label"], "Main")

    def test_missing_rpc_exits_with_error(self) -> None:
        err = io.StringIO()
        with patch.dict(os.environ, {}, clear=True), contextlib.redirect_stderr(err):
            with self.assertRaises(SystemExit) as ctx:
                cli.main(["snapshot", "--contract", NFT])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("[ERROR]", err.getvalue())

    def test_portfolio_without_wallets_exits(self) -> None:
        with patch.object(cli.LedgerClient, "from_url", return_value=FakeLedger()), contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                cli.main(["--rpc", "http://node", "portfolio"])


if __name__ == "__main__":
    unittest.main()
