import pytest
from eth_abi import encode as abi_encode

from _pipe_helpers import address_topic, make_log, uint_word

from decodepipe.constants import TRANSFER_T0
from decodepipe.core.errors import InvalidSignatureError
from decodepipe.decoding.registries import make_erc20_events, make_erc721_events
from decodepipe.decoding.registry_builder import (
    event_spec_from_signature,
    handler_from_signature,
    make_definition_set,
)

ALICE = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
BOB = "0x1234567890123456789012345678901234567890"


def test_erc20_transfer_decode():
    handler = make_erc20_events()["Transfer"]
    log = make_log(
        [TRANSFER_T0, address_topic(ALICE), address_topic(BOB)],
        data="0x" + uint_word(100),
    )

    assert handler.topic == TRANSFER_T0
    assert handler.signature == "Transfer(address,address,uint256)"
    assert handler.is_applicable(log)
    assert handler.decode(log) == {"from": ALICE, "to": BOB, "value": 100}


def test_erc20_and_erc721_transfer_told_apart_by_topic_count():
    erc20 = make_erc20_events()["Transfer"]
    erc721 = make_erc721_events()["Transfer"]
    fungible = make_log([TRANSFER_T0, address_topic(ALICE), address_topic(BOB)], data="0x" + uint_word(5))
    nft = make_log([TRANSFER_T0, address_topic(ALICE), address_topic(BOB), "0x" + uint_word(42)])

    assert erc20.topic == erc721.topic
    assert erc20.is_applicable(fungible) and not erc721.is_applicable(fungible)
    assert erc721.is_applicable(nft) and not erc20.is_applicable(nft)
    assert erc721.decode(nft) == {"from": ALICE, "to": BOB, "tokenId": 42}


def test_not_applicable_on_wrong_topic0_or_short_data():
    handler = make_erc20_events()["Transfer"]
    other_topic = make_log(["0x" + "00" * 32, address_topic(ALICE), address_topic(BOB)], data="0x" + uint_word(1))
    short_data = make_log([TRANSFER_T0, address_topic(ALICE), address_topic(BOB)], data="0x")

    assert not handler.is_applicable(other_topic)
    assert not handler.is_applicable(short_data)
    assert not handler.is_applicable(make_log([]))


def test_signed_indexed_and_dynamic_data():
    handler = handler_from_signature("Mint(int24 indexed tick, string memo, bool flag)")
    data = "0x" + abi_encode(["string", "bool"], ["hello", True]).hex()
    log = make_log([handler.topic, "0x" + "ff" * 32], data=data)

    assert handler.is_applicable(log)
    assert handler.decode(log) == {"tick": -1, "memo": "hello", "flag": True}


def test_bytes_values_are_hex():
    handler = handler_from_signature("Stored(bytes32 indexed key, bytes payload)")
    data = "0x" + abi_encode(["bytes"], [b"\x01\x02"]).hex()
    log = make_log([handler.topic, "0x" + "ab" * 32], data=data)

    assert handler.decode(log) == {"key": "0x" + "ab" * 32, "payload": "0x0102"}


def test_malformed_data_raises_on_decode():
    handler = make_erc20_events()["Transfer"]
    log = make_log([TRANSFER_T0, address_topic(ALICE), address_topic(BOB)], data="0x" + "zz" * 32)

    with pytest.raises(ValueError):
        handler.decode(log)


@pytest.mark.parametrize(
    "signature, canonical",
    [
        ("Foo(uint a, int b)", "Foo(uint256,int256)"),
        ("Foo(uint[] values)", "Foo(uint256[])"),
        ("Foo((uint a, address b) info)", "Foo((uint256,address))"),
        ("Foo((uint a, address b)[] infos, bool)", "Foo((uint256,address)[],bool)"),
        ("Foo()", "Foo()"),
    ],
)
def test_canonical_signature(signature, canonical):
    assert event_spec_from_signature(signature).signature == canonical


def test_unnamed_params_get_positional_names():
    spec = event_spec_from_signature("Foo(address indexed, uint256)")

    assert [tf.name for tf in spec.topic_fields] == ["arg0"]
    assert [df.name for df in spec.data_fields] == ["arg1"]


def test_anonymous_event_has_no_topic0():
    handler = handler_from_signature("Ping(address indexed who) anonymous")
    log = make_log([address_topic(ALICE)])

    assert handler.spec.anonymous
    assert handler.is_applicable(log)
    assert handler.decode(log) == {"who": ALICE}


@pytest.mark.parametrize(
    "signature",
    ["Transfer", "(address a)", "Transfer(address a", "Bad Name(address a)", "Foo(uint indexed a, uint indexed b, uint indexed c, uint indexed d)"],
)
def test_invalid_signature(signature):
    with pytest.raises(InvalidSignatureError):
        event_spec_from_signature(signature)


def test_definition_set_rejects_duplicate_names():
    with pytest.raises(ValueError):
        make_definition_set(["Transfer(address indexed a)", "Transfer(uint256 b)"])


def test_definition_set_custom_names():
    definitions = make_definition_set(
        ["Transfer(address indexed a)", "Transfer(uint256 b)"],
        names=["TransferByAddress", "TransferByAmount"],
    )

    assert list(definitions) == ["TransferByAddress", "TransferByAmount"]
