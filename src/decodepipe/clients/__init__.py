from decodepipe.clients.portal import PortalBlockStream, PortalClient, parse_block, parse_log

__all__ = ["PortalBlockStream", "PortalClient", "parse_block", "parse_log"]
