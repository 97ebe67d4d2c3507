"""Zendesk Triage MCP Server package"""

__version__ = "1.0.0"


def main():
    """Entry point for the Zendesk triage MCP server"""
    from .app import main as app_main
    app_main()


__all__ = ["main", "__version__"]
