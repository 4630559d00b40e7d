"""External agent boundary: prompts, invocation and output parsing."""

from ai_scan.agent.base import AgentInvoker
from ai_scan.agent.claude_invoker import ClaudeInvoker
from ai_scan.agent.prompt_generator import PromptGenerator, validate_template
from ai_scan.agent.result_parser import parse_agent_output

__all__ = [
    "AgentInvoker",
    "ClaudeInvoker",
    "PromptGenerator",
    "parse_agent_output",
    "validate_template",
]
