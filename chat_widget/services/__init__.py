from chat_widget.services.tickets import (
    HttpTicketClient,
    LoopbackTicketClient,
    TicketCreationError,
    TicketService,
)
from chat_widget.services.widget_config import WidgetConfigClient, WidgetConfigError

__all__ = [
    "TicketService",
    "HttpTicketClient",
    "LoopbackTicketClient",
    "TicketCreationError",
    "WidgetConfigClient",
    "WidgetConfigError",
]
