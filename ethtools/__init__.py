"""ethereum tools: ERC-721 holder snapshots and multi-wallet ERC-20/ETH portfolio valuation."""
__all__ = [
    "config",
    "models",
    "blockchain_utils",
    "snapshot",
    "aggregator",
    "valuation",
    "report",
    "export",
]
