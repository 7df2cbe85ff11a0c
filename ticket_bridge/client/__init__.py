"""Python client for the recording hand-off protocol.

    from ticket_bridge.client import TicketBridgeClient, RequesterHandoff
"""

from ticket_bridge.client.api import TicketBridgeClient
from ticket_bridge.client.handoff import AgentReporter, HandoffState, RequesterHandoff

__all__ = [
    "TicketBridgeClient",
    "RequesterHandoff",
    "AgentReporter",
    "HandoffState",
]
