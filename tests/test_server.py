import json

import pytest
from mcp import types

from zendesk_triage_mcp.server import ZendeskTools, create_server, get_prompt, list_prompts

from conftest import FakeRecord, hours_ago


def payload(result):
    assert len(result) == 1
    assert result[0].type == "text"
    return result[0].text


def test_lists_the_four_tools(tools):
    names = [tool.name for tool in tools.list_tools()]
    assert names == [
        "get_ticket_fields_by_id",
        "get_unsolved_ticket_ids_by_agent_name",
        "get_ticket_comments",
        "get_ticket_priority",
    ]


def test_tool_argument_types(tools):
    schemas = {tool.name: tool.inputSchema for tool in tools.list_tools()}
    assert schemas["get_ticket_fields_by_id"]["properties"]["id"]["type"] == "string"
    assert schemas["get_unsolved_ticket_ids_by_agent_name"]["properties"]["agent_name"]["type"] == "string"
    assert schemas["get_ticket_comments"]["properties"]["ticket_id"]["type"] == "number"
    assert schemas["get_ticket_priority"]["properties"]["ticket_id"]["type"] == "number"


class TestGetTicketFieldsById:

    async def test_returns_pretty_json(self, tools, zenpy):
        zenpy.tickets.return_value = FakeRecord(id=10, subject="Login broken", tags=["sla_enterprise"])

        text = payload(await tools.call_tool("get_ticket_fields_by_id", {"id": "10"}))

        assert json.loads(text) == {"id": 10, "subject": "Login broken", "tags": ["sla_enterprise"]}
        assert text == json.dumps(json.loads(text), indent=2)

    async def test_missing_id(self, tools, zenpy):
        text = payload(await tools.call_tool("get_ticket_fields_by_id", {}))
        assert text == "Error: Ticket id is required"
        zenpy.tickets.assert_not_called()

    async def test_backend_error_becomes_text(self, tools, zenpy):
        zenpy.tickets.side_effect = RuntimeError("RecordNotFound")
        text = payload(await tools.call_tool("get_ticket_fields_by_id", {"id": "404"}))
        assert text == "Error: RecordNotFound"


class TestGetUnsolvedTicketIdsByAgentName:

    async def test_projects_tickets(self, tools, zenpy):
        zenpy.search.return_value = [
            FakeRecord(id=1, status="open", subject="A", assignee_id=111, created_at="c1", updated_at="u1", description="long"),
            FakeRecord(id=2, status="pending", subject="B", assignee_id=111, created_at="c2", updated_at="u2"),
        ]

        text = payload(await tools.call_tool("get_unsolved_ticket_ids_by_agent_name", {"agent_name": "Jane"}))

        query = zenpy.search.call_args.args[0]
        assert query.startswith("assignee:111 ")
        assert json.loads(text) == [
            {"id": 1, "status": "open", "subject": "A", "assignee_id": 111, "created_at": "c1", "updated_at": "u1"},
            {"id": 2, "status": "pending", "subject": "B", "assignee_id": 111, "created_at": "c2", "updated_at": "u2"},
        ]

    async def test_numeric_agent_id(self, tools, zenpy):
        zenpy.search.return_value = []

        text = payload(await tools.call_tool("get_unsolved_ticket_ids_by_agent_name", {"agent_name": "12345"}))

        assert zenpy.search.call_args.args[0].startswith("assignee:12345 ")
        assert json.loads(text) == []

    async def test_unknown_agent_skips_search(self, tools, zenpy):
        text = payload(await tools.call_tool("get_unsolved_ticket_ids_by_agent_name", {"agent_name": "Nobody"}))

        assert text == "Error: No agent found with name: Nobody"
        zenpy.search.assert_not_called()

    async def test_missing_agent_name(self, tools):
        text = payload(await tools.call_tool("get_unsolved_ticket_ids_by_agent_name", {"agent_name": ""}))
        assert text == "Error: Agent name is required"


class TestGetTicketComments:

    async def test_projects_comments(self, tools, zenpy):
        zenpy.tickets.comments.return_value = [
            FakeRecord(id=1, author_id=9, body="hi", html_body="<p>hi</p>", public=True,
                       created_at="2025-03-01T00:00:00Z", attachments=[]),
        ]

        text = payload(await tools.call_tool("get_ticket_comments", {"ticket_id": 77}))

        zenpy.tickets.comments.assert_called_once_with(ticket=77)
        assert json.loads(text) == [{
            "id": 1,
            "author_id": 9,
            "body": "hi",
            "html_body": "<p>hi</p>",
            "public": True,
            "created_at": "2025-03-01T00:00:00Z",
        }]

    async def test_error_includes_ticket_id(self, tools, zenpy):
        zenpy.tickets.comments.side_effect = RuntimeError("timeout")
        text = payload(await tools.call_tool("get_ticket_comments", {"ticket_id": 77}))
        assert text == "Error: Failed to get comments for ticket 77: timeout"

    async def test_missing_ticket_id(self, tools):
        text = payload(await tools.call_tool("get_ticket_comments", None))
        assert text == "Error: Failed to get comments for ticket None: Ticket ID is required"


class TestGetTicketPriority:

    async def test_returns_breakdown(self, tools, zenpy):
        zenpy.tickets.return_value = FakeRecord(
            id=5, status="Open", tags=["sla_enterprise"], created_at=hours_ago(48)
        )
        zenpy.tickets.comments.return_value = [
            FakeRecord(id=1, created_at=hours_ago(40)),
            FakeRecord(id=2, created_at=hours_ago(12)),
        ]

        text = payload(await tools.call_tool("get_ticket_priority", {"ticket_id": 5}))

        assert json.loads(text) == {
            "sla_enterprise": 100,
            "age_score": 10.0,
            "response_score": 5.0,
            "status_score": 100,
            "total": 215,
        }

    async def test_error_includes_ticket_id(self, tools, zenpy):
        zenpy.tickets.side_effect = RuntimeError("RecordNotFound")
        zenpy.tickets.comments.return_value = []
        text = payload(await tools.call_tool("get_ticket_priority", {"ticket_id": 5}))
        assert text == "Error: Failed to calculate priority for ticket 5: RecordNotFound"


async def test_unknown_tool(tools):
    text = payload(await tools.call_tool("delete_everything", {}))
    assert text == "Error: Unknown tool: delete_everything"


def test_clock_defaults_to_utc_now(zendesk_client, agent_directory):
    tools = ZendeskTools(zendesk_client, agent_directory)
    assert tools.clock().tzinfo is not None


class TestPrompts:

    def test_list_prompts(self):
        assert [p.name for p in list_prompts()] == ["analyze-ticket-priority", "review-agent-queue"]

    def test_ticket_prompt(self):
        result = get_prompt("analyze-ticket-priority", {"ticket_id": "42"})
        assert "#42" in result.messages[0].content.text

    def test_queue_prompt(self):
        result = get_prompt("review-agent-queue", {"agent_name": "Jane"})
        assert "Jane" in result.messages[0].content.text

    def test_missing_argument(self):
        with pytest.raises(ValueError, match="ticket_id"):
            get_prompt("analyze-ticket-priority", {})

    def test_unknown_prompt(self):
        with pytest.raises(ValueError, match="Unknown prompt"):
            get_prompt("nope", None)


def test_create_server_registers_handlers(tools):
    server = create_server(tools)

    for request_type in (types.ListToolsRequest, types.CallToolRequest, types.ListPromptsRequest, types.GetPromptRequest):
        assert request_type in server.request_handlers


class TestCallToolOverProtocol:
    """tools/call requests routed through the registered MCP server"""

    @staticmethod
    async def call(tools, name, arguments):
        server = create_server(tools)
        handler = server.request_handlers[types.CallToolRequest]
        result = await handler(types.CallToolRequest(
            method="tools/call",
            params=types.CallToolRequestParams(name=name, arguments=arguments),
        ))
        assert result.root.isError is False
        return payload(result.root.content)

    async def test_success(self, tools, zenpy):
        zenpy.tickets.comments.return_value = [FakeRecord(id=1, author_id=9, body="hi", html_body="<p>hi</p>",
                                                          public=False, created_at="2025-03-01T00:00:00Z")]

        text = await self.call(tools, "get_ticket_comments", {"ticket_id": 3})

        assert json.loads(text)[0]["public"] is False

    @pytest.mark.parametrize("name,expected", [
        ("get_ticket_fields_by_id", "Error: Ticket id is required"),
        ("get_unsolved_ticket_ids_by_agent_name", "Error: Agent name is required"),
        ("get_ticket_comments", "Error: Failed to get comments for ticket None: Ticket ID is required"),
        ("get_ticket_priority", "Error: Failed to calculate priority for ticket None: Ticket ID is required"),
    ])
    async def test_missing_argument(self, tools, zenpy, name, expected):
        text = await self.call(tools, name, {})

        assert text == expected
        zenpy.tickets.assert_not_called()
        zenpy.search.assert_not_called()

    async def test_backend_error(self, tools, zenpy):
        zenpy.tickets.side_effect = RuntimeError("RecordNotFound")

        text = await self.call(tools, "get_ticket_fields_by_id", {"id": "404"})

        assert text == "Error: RecordNotFound"

    async def test_priority_breakdown(self, tools, zenpy):
        zenpy.tickets.return_value = FakeRecord(id=5, status="new", tags=[], created_at=hours_ago(24))
        zenpy.tickets.comments.return_value = []

        text = await self.call(tools, "get_ticket_priority", {"ticket_id": 5})

        assert json.loads(text) == {
            "sla_enterprise": 0,
            "age_score": 5.0,
            "response_score": 0,
            "status_score": 75,
            "total": 80,
        }
