"""Prompt rendering for mini-batches using Jinja2 templates."""

import logging
import re
from pathlib import Path

from jinja2 import Environment, StrictUndefined
from jinja2 import TemplateError as JinjaTemplateError

from ai_scan.consts import DEFAULT_PROMPT_TEMPLATE
from ai_scan.errors import TemplateError
from ai_scan.models.model_scan import ComplianceLevel, PendingScan

logger = logging.getLogger(__name__)

# (pattern, display name) pairs every template must contain
REQUIRED_PLACEHOLDERS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\{%-?\s*for\s+\w+\s+in\s+scans\s*-?%\}"), "{% for scan in scans %}"),
    (re.compile(r"\{\{-?\s*wcag_level\s*-?\}\}"), "{{ wcag_level }}"),
    (re.compile(r"\{\{-?\s*scan\.url\s*-?\}\}"), "{{ scan.url }}"),
    (re.compile(r"\{\{-?\s*scan\.scan_id\s*-?\}\}"), "{{ scan.scan_id }}"),
]

_LEVEL_ORDER = {ComplianceLevel.A: 1, ComplianceLevel.AA: 2, ComplianceLevel.AAA: 3}


def create_jinja_env() -> Environment:
    """Create the Jinja2 environment used for prompts."""
    return Environment(
        # Prompts are plain text, not HTML
        autoescape=False,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


def validate_template(template_content: str, env: Environment | None = None) -> None:
    """Check a template for required placeholders and valid syntax.

    Args:
        template_content: Raw template text
        env: Environment to compile with (default: a fresh prompt environment)

    Raises:
        TemplateError: If placeholders are missing or the template does not compile
    """
    missing = [name for pattern, name in REQUIRED_PLACEHOLDERS if not pattern.search(template_content)]
    if missing:
        raise TemplateError(
            f"Template validation failed. Missing required placeholders: {', '.join(missing)}"
        )

    env = env or create_jinja_env()
    try:
        env.parse(template_content)
    except JinjaTemplateError as e:
        raise TemplateError(f"Template syntax validation failed: {e}") from e


def mini_batch_wcag_level(scans: list[PendingScan]) -> ComplianceLevel:
    """Strictest compliance level requested by any scan in the group."""
    if not scans:
        return ComplianceLevel.AA
    return max((scan.wcag_level for scan in scans), key=lambda level: _LEVEL_ORDER[level])


class PromptGenerator:
    """Renders a prompt for a group of pending scans."""

    def __init__(self, template_path: Path | str | None = None):
        """Load and validate the prompt template.

        Args:
            template_path: Custom template file (default: bundled default-prompt.j2)

        Raises:
            TemplateError: If the file cannot be read or fails validation
        """
        self.template_path = Path(template_path) if template_path else DEFAULT_PROMPT_TEMPLATE
        try:
            content = self.template_path.read_text(encoding="utf-8")
        except OSError as e:
            raise TemplateError(f"Cannot read prompt template {self.template_path}: {e}") from e

        self._env = create_jinja_env()
        validate_template(content, self._env)
        self._template = self._env.from_string(content)
        logger.debug(f"Loaded prompt template {self.template_path}")

    def generate(self, scans: list[PendingScan]) -> str:
        """Render the prompt for one mini-batch.

        Args:
            scans: Scans in the mini-batch

        Returns:
            Prompt text
        """
        wcag_level = mini_batch_wcag_level(scans)
        return self._template.render(scans=scans, wcag_level=wcag_level.value)
