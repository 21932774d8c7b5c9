"""AI Agents package."""

from transaction_hub.agents.ai_agents import (
    SmsParsingAgent,
    StatementParsingAgent,
    extract_json_object,
)

__all__ = [
    "SmsParsingAgent",
    "StatementParsingAgent",
    "extract_json_object",
]
