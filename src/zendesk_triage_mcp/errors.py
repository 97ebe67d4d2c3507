"""Exceptions raised by the Zendesk triage server.

Everything a tool can raise derives from ``ZendeskMCPError`` so the tool
dispatcher can turn it into an ``Error: ...`` text payload.
"""


class ZendeskMCPError(Exception):
    """Base class for all errors raised by this package"""


class ConfigurationError(ZendeskMCPError):
    """Startup configuration is missing or invalid"""


class ToolValidationError(ZendeskMCPError):
    """A required tool argument is missing or empty"""


class AgentNotFoundError(ZendeskMCPError):
    """No agent in the directory matches the requested name"""

    def __init__(self, agent_name: str):
        super().__init__(f"No agent found with name: {agent_name}")
        self.agent_name = agent_name


class ZendeskGatewayError(ZendeskMCPError):
    """A call to the Zendesk API failed; carries the backend's message"""
