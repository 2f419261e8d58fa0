"""
Outbound message dispatch.

The workbench only decides that a message goes out and with which
variables; transport belongs to whichever dispatcher is plugged in.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from workbench.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class OutboundMessage:
    """One message handed to a dispatcher."""

    kind: str
    recipients: List[str]
    subject: str
    body: str
    variables: Dict[str, Any] = field(default_factory=dict)
    template_id: Optional[str] = None
    sender: str = settings.DEFAULT_SENDER_EMAIL


class MessageDispatcher(Protocol):
    """Interface for delivery backends."""

    async def dispatch(self, message: OutboundMessage) -> None:
        ...


class LoggingDispatcher:
    """
    Default dispatcher: logs each message.

    With record=True the messages are also kept in `sent`, for callers that
    need to inspect what went out.
    """

    def __init__(self, record: bool = False):
        self.record = record
        self.sent: List[OutboundMessage] = []

    async def dispatch(self, message: OutboundMessage) -> None:
        if self.record:
            self.sent.append(message)
        logger.info(
            "Dispatched %s message to %d recipient(s): %s",
            message.kind,
            len(message.recipients),
            message.subject,
        )


_default_dispatcher = LoggingDispatcher()


def get_dispatcher() -> MessageDispatcher:
    """Dispatcher used when a service is not given one explicitly."""
    return _default_dispatcher
