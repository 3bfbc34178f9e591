import pytest

from _pipe_helpers import T1, FakeHandler


@pytest.fixture
def erc20_like() -> FakeHandler:
    return FakeHandler(T1, "Transfer(address,address,uint256)", {"from": "0x1", "to": "0x2", "value": 100})


@pytest.fixture
def erc721_like() -> FakeHandler:
    return FakeHandler(T1, "Transfer(address,address,uint256)", {"from": "0x1", "to": "0x2", "tokenId": 7})
