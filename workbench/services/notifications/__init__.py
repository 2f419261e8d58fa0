from workbench.services.notifications.base import (
    LoggingDispatcher,
    MessageDispatcher,
    OutboundMessage,
    get_dispatcher,
)

__all__ = ["LoggingDispatcher", "MessageDispatcher", "OutboundMessage", "get_dispatcher"]
