import json

import pytest
from eth_utils import keccak

from logtap.abi_events import get_canonical_type, get_events_from_abi, make_registry_from_abi
from logtap.core.errors import (
    DuplicateSignature,
    RegistryError,
    RegistryFrozen,
    TooManyIndexedParameters,
)
from logtap.decoding.registries import (
    make_erc20_registry,
    make_erc721_registry,
    make_weth_registry,
)
from logtap.decoding.registry_builder import (
    event_descriptor_from_signature,
    make_registry,
    merge_registries,
)
from logtap.decoding.specs import EventRegistry
from logtap.decoding.types import ParameterType, parameter_type_of

TRANSFER_TOPIC0 = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
APPROVAL_TOPIC0 = "0x8c5be1e5ebec7d5bd14f71427d1e84f3dd0314c0f7b2291e5b200ac8c7c3b925"


def test_registered_event_found_by_its_signature_digest() -> None:
    reg = make_erc20_registry()

    transfer = reg.match(keccak(text="Transfer(address,address,uint256)"))
    approval = reg.match(APPROVAL_TOPIC0)

    assert transfer is not None and transfer.name == "Transfer"
    assert transfer.topic0 == TRANSFER_TOPIC0
    assert approval is not None and approval.name == "Approval"


def test_unknown_or_malformed_digest_is_not_found() -> None:
    reg = make_erc20_registry()

    assert reg.match(keccak(text="Swap(address,uint256)")) is None
    assert reg.match(b"\x00" * 31) is None
    assert reg.match("0xnothex") is None
    assert TRANSFER_TOPIC0 in reg
    assert 42 not in reg


def test_signature_parsing_strips_names_and_indexed() -> None:
    d = event_descriptor_from_signature("event Foo(uint256 indexed, bytes note);")

    assert d.signature == "Foo(uint256,bytes)"
    assert [p.name for p in d.params] == ["arg0", "note"]
    assert [p.indexed for p in d.params] == [True, False]
    assert d.digest == keccak(text="Foo(uint256,bytes)")


def test_invalid_signature_is_rejected() -> None:
    with pytest.raises(ValueError):
        event_descriptor_from_signature("NoParens")


def test_four_indexed_parameters_rejected_at_registration() -> None:
    sig = "Bad(address indexed a, address indexed b, address indexed c, address indexed d)"
    with pytest.raises(TooManyIndexedParameters) as exc:
        make_registry(sig)
    assert isinstance(exc.value, RegistryError)


def test_reregistering_same_event_is_idempotent() -> None:
    d = event_descriptor_from_signature("Transfer(address indexed from, address indexed to, uint256 value)")
    reg = EventRegistry([d, d])
    assert len(reg) == 1


def test_conflicting_layouts_for_one_digest_raise() -> None:
    # ERC-20 and ERC-721 Transfer hash identically but index different params.
    with pytest.raises(DuplicateSignature) as exc:
        merge_registries(make_erc20_registry(), make_erc721_registry())
    assert exc.value.digest_hex in (TRANSFER_TOPIC0, APPROVAL_TOPIC0)


def test_frozen_registry_refuses_new_events() -> None:
    reg = make_erc20_registry()
    assert reg.frozen
    with pytest.raises(RegistryFrozen):
        reg.register(event_descriptor_from_signature("Deposit(address indexed dst, uint256 wad)"))


def test_merge_erc20_and_weth() -> None:
    reg = merge_registries(make_erc20_registry(), make_weth_registry())

    assert len(reg) == 4
    assert reg.match("0xe1fffcc4923d04b559f4d29a8bfc6cda04eb5b0d3c460751c2402c5c5cc9109c").name == "Deposit"
    assert reg.match("0x7fcf532c15f0a6db0bd6d0e038bea71d30d808c7d98cb3bf7268a95bf5081b65").name == "Withdrawal"
    assert sorted(reg.topic0s()) == sorted(d.topic0 for d in reg)


@pytest.mark.parametrize(
    "abi_type,expected",
    [
        ("address", ParameterType.ADDRESS),
        ("uint256", ParameterType.UINT),
        ("uint", ParameterType.UINT),
        ("uint8", ParameterType.UINT),
        ("int128", ParameterType.INT),
        ("bool", ParameterType.BOOL),
        ("bytes32", ParameterType.FIXED_BYTES),
        ("bytes1", ParameterType.FIXED_BYTES),
        ("bytes", ParameterType.BYTES),
        ("string", ParameterType.BYTES),
        ("uint7", ParameterType.RAW),
        ("bytes33", ParameterType.RAW),
        ("address[]", ParameterType.RAW),
        ("(uint256,bool)", ParameterType.RAW),
    ],
)
def test_parameter_type_mapping(abi_type: str, expected: ParameterType) -> None:
    assert parameter_type_of(abi_type) is expected


ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "from", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "to", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "value", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
    {
        "anonymous": True,
        "inputs": [{"indexed": False, "name": "x", "type": "uint256"}],
        "name": "Hidden",
        "type": "event",
    },
    {
        "inputs": [
            {
                "indexed": False,
                "name": "orders",
                "type": "tuple[]",
                "components": [
                    {"name": "amount", "type": "uint256"},
                    {"name": "maker", "type": "address"},
                ],
            },
        ],
        "name": "Filled",
        "type": "event",
    },
    {"inputs": [], "name": "totalSupply", "outputs": [], "type": "function", "stateMutability": "view"},
]


def test_registry_from_abi_json() -> None:
    reg = make_registry_from_abi(json.dumps(ABI))

    assert len(reg) == 2
    assert reg.match(TRANSFER_TOPIC0).indexed_params[1].name == "to"
    filled = reg.match(keccak(text="Filled((uint256,address)[])"))
    assert filled is not None
    assert filled.params[0].type is ParameterType.RAW


def test_canonical_tuple_type() -> None:
    events = get_events_from_abi(ABI)
    filled = next(e for e in events if e.name == "Filled")
    assert get_canonical_type(filled.inputs[0]) == "(uint256,address)[]"
