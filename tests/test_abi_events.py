import json
import logging

from _pipe_helpers import address_topic, make_log

from decodepipe.abi_events import get_event_signature, get_events_from_abi, make_definition_set_from_abi
from decodepipe.constants import APPROVAL_T0, TRANSFER_T0
from decodepipe.decoding.registry import TopicRegistry

ERC20_ABI = [
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
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "owner", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "spender", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "value", "type": "uint256"},
        ],
        "name": "Approval",
        "type": "event",
    },
    {
        "inputs": [{"internalType": "address", "name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

TUPLE_EVENT = {
    "inputs": [
        {
            "indexed": False,
            "name": "order",
            "type": "tuple",
            "components": [
                {"name": "maker", "type": "address"},
                {"name": "amounts", "type": "uint256[]"},
            ],
        }
    ],
    "name": "OrderFilled",
    "type": "event",
}


def test_definition_set_from_abi_list():
    definitions = make_definition_set_from_abi(ERC20_ABI)

    assert list(definitions) == ["Transfer", "Approval"]
    assert definitions["Transfer"].topic == TRANSFER_T0
    assert definitions["Approval"].topic == APPROVAL_T0


def test_definition_set_from_artifact_file(tmp_path):
    path = tmp_path / "Token.json"
    path.write_text(json.dumps({"contractName": "Token", "abi": ERC20_ABI}))

    registry = TopicRegistry([make_definition_set_from_abi(path)])

    assert registry.topics == {TRANSFER_T0, APPROVAL_T0}


def test_abi_handler_decodes():
    handler = make_definition_set_from_abi(ERC20_ABI)["Transfer"]
    sender = "0x" + "11" * 20
    log = make_log(
        [TRANSFER_T0, address_topic(sender), address_topic(sender)],
        data="0x" + (7).to_bytes(32, "big").hex(),
    )

    assert handler.is_applicable(log)
    assert handler.decode(log)["value"] == 7


def test_tuple_signature_is_expanded():
    events = get_events_from_abi([TUPLE_EVENT])

    assert get_event_signature(events["OrderFilled"]) == "OrderFilled((address,uint256[]))"


def test_overloaded_event_keeps_first_and_warns(caplog):
    overload = {
        "inputs": [{"indexed": True, "name": "from", "type": "address"}],
        "name": "Transfer",
        "type": "event",
    }

    with caplog.at_level(logging.WARNING):
        events = get_events_from_abi(ERC20_ABI + [overload])

    assert get_event_signature(events["Transfer"]) == "Transfer(address,address,uint256)"
    assert "ABI overload Transfer(address) ignored" in caplog.text
