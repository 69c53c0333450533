from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest
from eth_abi import encode
from eth_utils import keccak

from logtap.core.models import LogRecord
from logtap.decoding.registries import make_erc20_registry
from logtap.decoding.specs import EventRegistry
from logtap.presentation.console import CollectingSink

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
TOKEN = "0x" + "c3" * 20
TRANSFER_T0 = keccak(text="Transfer(address,address,uint256)")


@pytest.fixture
def mock_rpc():
    rpc = AsyncMock()
    rpc.get_logs = AsyncMock(return_value=[])
    rpc.latest_block = AsyncMock(return_value=100)
    rpc.aclose = AsyncMock()
    return rpc


@pytest.fixture
def erc20_registry() -> EventRegistry:
    return make_erc20_registry()


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def make_record() -> Callable[..., LogRecord]:
    def _make(
        topics: list[bytes],
        data: bytes = b"",
        *,
        block_number: int = 1,
        log_index: int = 0,
        tx_hash: str = "0x" + "ab" * 32,
        address: str = TOKEN,
    ) -> LogRecord:
        return LogRecord(
            address=address,
            topics=tuple(topics),
            data=data,
            block_number=block_number,
            tx_hash=tx_hash,
            log_index=log_index,
        )

    return _make


@pytest.fixture
def make_transfer(make_record: Callable[..., LogRecord]) -> Callable[..., LogRecord]:
    """ERC-20 Transfer log encoded with eth-abi."""

    def _make(value: int = 1, **kw: Any) -> LogRecord:
        return make_record(
            [TRANSFER_T0, encode(["address"], [ALICE]), encode(["address"], [BOB])],
            encode(["uint256"], [value]),
            **kw,
        )

    return _make
