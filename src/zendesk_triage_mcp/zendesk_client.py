import asyncio
import logging
from typing import Any, Dict, List

from zenpy import Zenpy

from zendesk_triage_mcp.errors import ConfigurationError, ToolValidationError, ZendeskGatewayError

logger = logging.getLogger("zendesk-mcp-server.zendesk")

UNSOLVED_STATUSES = ["open", "pending", "Feature Request Review Pending", "ENG Confirmed Bug"]


def _search_value(value: str) -> str:
    return f'"{value}"' if " " in value else value


def unsolved_tickets_query(agent_id: int) -> str:
    """Zendesk search query for an agent's tickets in any unsolved status"""
    statuses = " ".join(f"status:{_search_value(status)}" for status in UNSOLVED_STATUSES)
    return f"assignee:{agent_id} {statuses}"


def _to_dict(record: Any) -> Dict[str, Any]:
    if isinstance(record, dict):
        return record
    return record.to_dict()


class ZendeskClient:
    """
    Async wrapper around a zenpy client.

    zenpy is blocking, so every call is run in a worker thread.
    """

    def __init__(self, client: Zenpy):
        self.client = client

    @classmethod
    def from_credentials(cls, subdomain: str, email: str, token: str) -> "ZendeskClient":
        """
        Initialize the Zendesk client using zenpy lib.
        """
        if not subdomain or not email or not token:
            raise ConfigurationError("Missing required Zendesk credentials. Please check ZENDESK_SUBDOMAIN, ZENDESK_EMAIL, and ZENDESK_API_KEY environment variables.")

        # zenpy adds .zendesk.com itself
        if '.zendesk.com' in subdomain:
            subdomain = subdomain.replace('.zendesk.com', '')

        return cls(Zenpy(subdomain=subdomain, email=email, token=token))

    async def get_ticket(self, ticket_id: Any) -> Dict[str, Any]:
        """
        Query a ticket by its ID, returning every field Zendesk has for it
        """
        if not ticket_id:
            raise ToolValidationError("Ticket id is required")
        try:
            ticket = await asyncio.to_thread(self.client.tickets, id=ticket_id)
        except Exception as e:
            raise ZendeskGatewayError(str(e)) from e
        return _to_dict(ticket)

    async def get_ticket_comments(self, ticket_id: Any) -> List[Dict[str, Any]]:
        """
        Get all comments for a ticket, in the order Zendesk returns them
        """
        if not ticket_id:
            raise ToolValidationError("Ticket ID is required")

        def fetch():
            return list(self.client.tickets.comments(ticket=ticket_id))

        try:
            comments = await asyncio.to_thread(fetch)
        except Exception as e:
            raise ZendeskGatewayError(str(e)) from e
        return [_to_dict(comment) for comment in comments]

    async def search_tickets(self, query: str) -> List[Dict[str, Any]]:
        """
        Run a ticket search restricted to type:ticket and return the matches
        """
        def fetch():
            results = self.client.search(query, type='ticket')
            return list(results) if results is not None else []

        logger.debug(f"Searching tickets: {query}")
        try:
            tickets = await asyncio.to_thread(fetch)
        except Exception as e:
            raise ZendeskGatewayError(str(e)) from e
        return [_to_dict(ticket) for ticket in tickets]
