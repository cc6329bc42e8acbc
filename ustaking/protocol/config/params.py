# MIT License
# Copyright (c) 2025 Hashborn

import os
from decimal import Decimal, InvalidOperation
from typing import Dict

# Global Constants
DENOM = "uSTK"
DECIMALS = 18
UNIT = 10**DECIMALS


class NetworkConfig:
    def __init__(self,
                 network_id: str,
                 token_name: str = "uStaking",
                 token_symbol: str = DENOM,
                 decimals: int = DECIMALS,
                 initial_supply: int = 79_000_000 * UNIT,   # Minted to the deployer
                 max_supply: int = 100_000_000 * UNIT,
                 bech32_prefix_acc: str = "ust",
                 staking_label: str = "UStaking",          # Seed of the staking ledger address
                 version: int = 1):
        self.network_id = network_id
        self.token_name = token_name
        self.token_symbol = token_symbol
        self.decimals = decimals
        self.initial_supply = initial_supply
        self.max_supply = max_supply
        self.bech32_prefix_acc = bech32_prefix_acc
        self.staking_label = staking_label
        self.version = version


NETWORKS: Dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(network_id="devnet"),
    "testnet": NetworkConfig(network_id="testnet"),
    "mainnet": NetworkConfig(network_id="mainnet"),
}

CURRENT_NETWORK = NETWORKS[os.environ.get("USTAKING_NETWORK", "devnet")]


def to_base_units(amount: str, decimals: int = DECIMALS) -> int:
    """'1.5' -> 1500000000000000000. Rejects negatives and excess precision."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount}")
    scaled = value * (Decimal(10) ** decimals)
    if value < 0 or scaled != scaled.to_integral_value():
        raise ValueError(f"Invalid amount: {amount}")
    return int(scaled)


def from_base_units(amount: int, decimals: int = DECIMALS) -> str:
    value = Decimal(int(amount)) / (Decimal(10) ** decimals)
    return format(value.normalize(), "f") if amount else "0"
