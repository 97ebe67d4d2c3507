import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from mcp import types
from mcp.server.lowlevel import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server

from zendesk_triage_mcp import __version__
from zendesk_triage_mcp.agents import AgentDirectory
from zendesk_triage_mcp.errors import ToolValidationError
from zendesk_triage_mcp.priority import score_ticket
from zendesk_triage_mcp.zendesk_client import ZendeskClient, unsolved_tickets_query

logger = logging.getLogger("zendesk-mcp-server.tools")

SERVER_NAME = "Zendesk MCP Server"

TICKET_SUMMARY_FIELDS = ["id", "status", "subject", "assignee_id", "created_at", "updated_at"]
COMMENT_FIELDS = ["id", "author_id", "body", "html_body", "public", "created_at"]

TICKET_PRIORITY_TEMPLATE = """
You are a Zendesk support lead. You've been asked how urgent ticket #{ticket_id} is.

Use get_ticket_priority to fetch the priority breakdown and get_ticket_comments to read the conversation, then explain:
1. The overall priority score and which factors drive it
2. How long the customer has been waiting since the last response
3. Whether the ticket should be picked up next

Be brief and focus on what the agent should do now.
"""

AGENT_QUEUE_TEMPLATE = """
You are a Zendesk support lead reviewing the queue of {agent_name}.

1. Use get_unsolved_ticket_ids_by_agent_name to list their unsolved tickets
2. Use get_ticket_priority on each ticket
3. Present the tickets ordered from highest to lowest total score, with subject, status and score

Call out any ticket tagged for enterprise SLA and any ticket with no recent response.
"""


def _project(record: Dict[str, Any], fields: List[str]) -> Dict[str, Any]:
    return {field: record.get(field) for field in fields}


def _require(arguments: Dict[str, Any], name: str, message: str) -> Any:
    value = arguments.get(name)
    if not value:
        raise ToolValidationError(message)
    return value


class ZendeskTools:
    """
    The tools exposed to MCP clients.

    Tool failures never surface as protocol errors: they come back as a
    normal result whose text starts with "Error: ".
    """

    def __init__(
        self,
        zendesk_client: ZendeskClient,
        agent_directory: AgentDirectory,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.zendesk_client = zendesk_client
        self.agent_directory = agent_directory
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def list_tools(self) -> list[types.Tool]:
        return [
            types.Tool(
                name="get_ticket_fields_by_id",
                description="Returns an object of all ticket fields, including title, comments, and all custom fields for a ticket of a specified ID. If you're just trying to get comments, use get_ticket_comments instead",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "id": {
                            "type": "string",
                            "description": "The ID of the ticket to retrieve"
                        }
                    },
                    "required": ["id"]
                }
            ),
            types.Tool(
                name="get_unsolved_ticket_ids_by_agent_name",
                description="Returns a list of ticket ids given an agents first name or full name",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "agent_name": {
                            "type": "string",
                            "description": "Agent first name, full name, or numeric Zendesk user ID"
                        }
                    },
                    "required": ["agent_name"]
                }
            ),
            types.Tool(
                name="get_ticket_comments",
                description="Get all comments for a specific ticket",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "ticket_id": {
                            "type": "number",
                            "description": "The ID of the ticket to get comments for"
                        }
                    },
                    "required": ["ticket_id"]
                }
            ),
            types.Tool(
                name="get_ticket_priority",
                description="Calculate the priority of a ticket based on SLA tag, age, time since last response, and status. Returns a dictionary with priority score and breakdown of factors.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "ticket_id": {
                            "type": "number",
                            "description": "The ID of the ticket to score"
                        }
                    },
                    "required": ["ticket_id"]
                }
            ),
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> list[types.TextContent]:
        """Handle Zendesk tool execution requests"""
        arguments = arguments or {}
        try:
            if name == "get_ticket_fields_by_id":
                result = await self.get_ticket_fields_by_id(arguments)
            elif name == "get_unsolved_ticket_ids_by_agent_name":
                result = await self.get_unsolved_ticket_ids_by_agent_name(arguments)
            elif name == "get_ticket_comments":
                result = await self.get_ticket_comments(arguments)
            elif name == "get_ticket_priority":
                result = await self.get_ticket_priority(arguments)
            else:
                raise ValueError(f"Unknown tool: {name}")
        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            return [types.TextContent(
                type="text",
                text=f"Error: {self._failure_message(name, arguments, e)}"
            )]

        return [types.TextContent(
            type="text",
            text=json.dumps(result, indent=2, default=str)
        )]

    @staticmethod
    def _failure_message(name: str, arguments: Dict[str, Any], error: Exception) -> str:
        if name == "get_ticket_comments":
            return f"Failed to get comments for ticket {arguments.get('ticket_id')}: {error}"
        if name == "get_ticket_priority":
            return f"Failed to calculate priority for ticket {arguments.get('ticket_id')}: {error}"
        return str(error)

    async def get_ticket_fields_by_id(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        ticket_id = _require(arguments, "id", "Ticket id is required")
        return await self.zendesk_client.get_ticket(ticket_id)

    async def get_unsolved_ticket_ids_by_agent_name(self, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        agent_name = _require(arguments, "agent_name", "Agent name is required")
        agent_id = self.agent_directory.resolve(str(agent_name))

        tickets = await self.zendesk_client.search_tickets(unsolved_tickets_query(agent_id))

        status_counts: Dict[str, int] = {}
        for ticket in tickets:
            status = ticket.get("status")
            status_counts[status] = status_counts.get(status, 0) + 1
        logger.info(f"Agent {agent_id}: {len(tickets)} unsolved tickets")
        logger.debug(f"Status breakdown for agent {agent_id}: {status_counts}")

        return [_project(ticket, TICKET_SUMMARY_FIELDS) for ticket in tickets]

    async def get_ticket_comments(self, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        ticket_id = _require(arguments, "ticket_id", "Ticket ID is required")
        comments = await self.zendesk_client.get_ticket_comments(ticket_id)
        return [_project(comment, COMMENT_FIELDS) for comment in comments]

    async def get_ticket_priority(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        ticket_id = _require(arguments, "ticket_id", "Ticket ID is required")
        ticket, comments = await asyncio.gather(
            self.zendesk_client.get_ticket(ticket_id),
            self.zendesk_client.get_ticket_comments(ticket_id),
        )
        breakdown = score_ticket(ticket, comments, now=self.clock())
        return breakdown.model_dump(by_alias=True)


def list_prompts() -> list[types.Prompt]:
    return [
        types.Prompt(
            name="analyze-ticket-priority",
            description="Explain how urgent a Zendesk ticket is from its priority breakdown",
            arguments=[
                types.PromptArgument(
                    name="ticket_id",
                    description="The ID of the ticket to analyze",
                    required=True,
                )
            ],
        ),
        types.Prompt(
            name="review-agent-queue",
            description="Order an agent's unsolved tickets by priority score",
            arguments=[
                types.PromptArgument(
                    name="agent_name",
                    description="Agent first name, full name, or Zendesk user ID",
                    required=True,
                )
            ],
        ),
    ]


def get_prompt(name: str, arguments: Optional[Dict[str, str]]) -> types.GetPromptResult:
    if name == "analyze-ticket-priority":
        if not arguments or "ticket_id" not in arguments:
            raise ValueError("Missing required argument: ticket_id")
        ticket_id = int(arguments["ticket_id"])
        prompt = TICKET_PRIORITY_TEMPLATE.format(ticket_id=ticket_id)
        description = f"Priority analysis prompt for ticket #{ticket_id}"

    elif name == "review-agent-queue":
        if not arguments or "agent_name" not in arguments:
            raise ValueError("Missing required argument: agent_name")
        agent_name = arguments["agent_name"]
        prompt = AGENT_QUEUE_TEMPLATE.format(agent_name=agent_name)
        description = f"Queue review prompt for {agent_name}"

    else:
        raise ValueError(f"Unknown prompt: {name}")

    return types.GetPromptResult(
        description=description,
        messages=[
            types.PromptMessage(
                role="user",
                content=types.TextContent(type="text", text=prompt.strip()),
            )
        ],
    )


def create_server(tools: ZendeskTools) -> Server:
    """Build the MCP server and register the tool and prompt handlers"""
    server = Server(SERVER_NAME, version=__version__)

    @server.list_prompts()
    async def handle_list_prompts() -> list[types.Prompt]:
        return list_prompts()

    @server.get_prompt()
    async def handle_get_prompt(name: str, arguments: Dict[str, str] | None) -> types.GetPromptResult:
        try:
            return get_prompt(name, arguments)
        except Exception as e:
            logger.error(f"Error generating prompt: {e}")
            raise

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return tools.list_tools()

    # tools check their own arguments so a missing one comes back as "Error: ..." text
    @server.call_tool(validate_input=False)
    async def handle_call_tool(
            name: str,
            arguments: dict[str, Any] | None
    ) -> list[types.TextContent]:
        return await tools.call_tool(name, arguments)

    return server


def initialization_options(server: Server) -> InitializationOptions:
    return InitializationOptions(
        server_name=SERVER_NAME,
        server_version=__version__,
        capabilities=server.get_capabilities(
            notification_options=NotificationOptions(),
            experimental_capabilities={},
        ),
    )


async def run_stdio(server: Server):
    """Run the MCP server using stdin/stdout streams"""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream=read_stream,
            write_stream=write_stream,
            initialization_options=initialization_options(server),
        )
