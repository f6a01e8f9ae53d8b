"""
nft_vault: a collateral-backed asset ledger with a fixed-price marketplace
and per-block staking yield.
"""
__version__ = "0.1.0"
