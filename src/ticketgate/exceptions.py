class TicketGateError(Exception):
    """Base exception for ticketgate errors."""

    pass


class StoreUnavailableError(TicketGateError):
    """Ticket store cannot be read or written. Fatal for the current request."""

    pass


class TicketBusyError(TicketGateError):
    """Another redemption holds the ticket. Transient, the caller may retry."""

    def __init__(self, ticket_id: str) -> None:
        super().__init__(f"Ticket verification in progress: {ticket_id}")
        self.ticket_id = ticket_id


class TicketIdCollisionError(TicketGateError):
    """No free ticket id was found within the configured number of attempts."""

    pass


class GateClientError(TicketGateError):
    pass
