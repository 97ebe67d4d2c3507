import json
import logging
from typing import Dict, Iterator, Mapping, Tuple

from zendesk_triage_mcp.errors import AgentNotFoundError, ConfigurationError

logger = logging.getLogger("zendesk-mcp-server.agents")


class AgentDirectory:
    """
    Static lookup of support agent names to Zendesk user ids.

    The mapping is copied on construction and never changes afterwards.
    Iteration follows the order the names were given in, which decides
    which agent wins when several share a first name.
    """

    def __init__(self, agents: Mapping[str, int]):
        self._agents: Dict[str, int] = {name: int(user_id) for name, user_id in agents.items()}

    @classmethod
    def from_json_file(cls, path: str) -> "AgentDirectory":
        """Load a directory from a JSON object of ``{"Full Name": user_id}``"""
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Failed to load agent directory from {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Agent directory {path} must contain a JSON object")

        try:
            directory = cls(data)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Agent directory {path} has a non-numeric id: {e}")
        logger.info(f"Loaded {len(directory)} agents from {path}")
        return directory

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(self._agents.items())

    def resolve(self, name_or_id: str) -> int:
        """
        Resolve an agent name or numeric id to a Zendesk user id.

        Numeric input is returned as-is without checking that the user exists.
        Otherwise an exact full-name match is tried first, then a
        case-insensitive match on the first name; the first directory entry
        with a matching first name wins.
        """
        if name_or_id.isascii() and name_or_id.isdigit():
            return int(name_or_id)

        if name_or_id in self._agents:
            return self._agents[name_or_id]

        tokens = name_or_id.split()
        if tokens:
            first_name = tokens[0].lower()
            for full_name, user_id in self._agents.items():
                agent_tokens = full_name.split()
                if agent_tokens and agent_tokens[0].lower() == first_name:
                    return user_id

        raise AgentNotFoundError(name_or_id)
