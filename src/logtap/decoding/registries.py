"""Built-in event schemas for common token standards.

All registries are frozen and composable through `merge_registries`:

>>> from logtap.decoding.registries import make_erc20_registry, make_weth_registry
>>> from logtap.decoding.registry_builder import merge_registries
>>> reg = merge_registries(make_erc20_registry(), make_weth_registry())

ERC-20 and ERC-721 `Transfer`/`Approval` share a digest (only the indexed
flags differ), so those two registries cannot be merged: doing so raises
`DuplicateSignature`. Pick the one that matches the watched contract.
"""

from __future__ import annotations

from .registry_builder import make_registry
from .specs import EventRegistry

ERC20_EVENTS = [
    "Transfer(address indexed from, address indexed to, uint256 value)",
    "Approval(address indexed owner, address indexed spender, uint256 value)",
]

ERC721_EVENTS = [
    "Transfer(address indexed from, address indexed to, uint256 indexed tokenId)",
    "Approval(address indexed owner, address indexed approved, uint256 indexed tokenId)",
    "ApprovalForAll(address indexed owner, address indexed operator, bool approved)",
]

WETH_EVENTS = [
    "Deposit(address indexed dst, uint256 wad)",
    "Withdrawal(address indexed src, uint256 wad)",
]


# -------------------------
# Fungible tokens
# -------------------------

def make_erc20_registry() -> EventRegistry:
    """Return registry for ERC-20 Transfer/Approval."""
    return make_registry(ERC20_EVENTS)


def make_weth_registry() -> EventRegistry:
    """Return registry for WETH9 Deposit/Withdrawal (merge with ERC-20 for WETH)."""
    return make_registry(WETH_EVENTS)


# -------------------------
# Non-fungible tokens
# -------------------------

def make_erc721_registry() -> EventRegistry:
    """Return registry for ERC-721 Transfer/Approval/ApprovalForAll."""
    return make_registry(ERC721_EVENTS)
