"""Ready-made definition sets for common token standards.

ERC-20 and ERC-721 declare `Transfer` and `Approval` with the same canonical
signature, hence the same topic0. They differ only in how many parameters are
indexed, so `SpecEventHandler.is_applicable` tells them apart by topic count:

- ERC-20  `Transfer(address indexed from, address indexed to, uint256 value)`
  → 3 topics, `value` in data
- ERC-721 `Transfer(address indexed from, address indexed to, uint256 indexed tokenId)`
  → 4 topics, empty data

Example
-------
>>> from decodepipe.decoding.registries import make_erc20_events, make_erc721_events
>>> pipe = EventDecodingPipe(source, [make_erc721_events(), make_erc20_events()])
"""

from __future__ import annotations

from .registry import EventDefinitionSet
from .registry_builder import make_definition_set

ERC20_TRANSFER = "Transfer(address indexed from, address indexed to, uint256 value)"
ERC20_APPROVAL = "Approval(address indexed owner, address indexed spender, uint256 value)"

ERC721_TRANSFER = "Transfer(address indexed from, address indexed to, uint256 indexed tokenId)"
ERC721_APPROVAL = "Approval(address indexed owner, address indexed approved, uint256 indexed tokenId)"
ERC721_APPROVAL_FOR_ALL = "ApprovalForAll(address indexed owner, address indexed operator, bool approved)"


# -------------------------
# ERC-20
# -------------------------

def make_erc20_events() -> EventDefinitionSet:
    """Return the ERC-20 definition set (Transfer, Approval)."""
    return make_definition_set([ERC20_TRANSFER, ERC20_APPROVAL])


# -------------------------
# ERC-721
# -------------------------

def make_erc721_events() -> EventDefinitionSet:
    """Return the ERC-721 definition set (Transfer, Approval, ApprovalForAll)."""
    return make_definition_set([ERC721_TRANSFER, ERC721_APPROVAL, ERC721_APPROVAL_FOR_ALL])
