"""Tests for prompt generation."""

from pathlib import Path

import pytest

from ai_scan.agent.prompt_generator import PromptGenerator, mini_batch_wcag_level, validate_template
from ai_scan.errors import TemplateError
from ai_scan.models.model_scan import ComplianceLevel

from conftest import make_scan

VALID_TEMPLATE = (
    "Level {{ wcag_level }}\n"
    "{% for scan in scans %}- {{ scan.scan_id }} {{ scan.url }}\n{% endfor %}"
)


class TestPromptGenerator:
    """Tests for PromptGenerator."""

    def test_default_template_lists_every_scan(self) -> None:
        scans = [make_scan(1), make_scan(2)]

        prompt = PromptGenerator().generate(scans)

        for scan in scans:
            assert f"scanId: {scan.scan_id}" in prompt
            assert scan.url in prompt
        assert "WCAG 2.2 Level AA" in prompt

    def test_custom_template(self, tmp_path: Path) -> None:
        template = tmp_path / "custom.j2"
        template.write_text(VALID_TEMPLATE, encoding="utf-8")

        prompt = PromptGenerator(template).generate([make_scan(1)])

        assert prompt == "Level AA\n- scan-001 https://example.com/page-1\n"

    def test_missing_template_file(self, tmp_path: Path) -> None:
        with pytest.raises(TemplateError):
            PromptGenerator(tmp_path / "missing.j2")

    def test_strictest_level_used(self) -> None:
        scans = [make_scan(1, ComplianceLevel.A), make_scan(2, ComplianceLevel.AAA)]

        assert mini_batch_wcag_level(scans) == ComplianceLevel.AAA


class TestValidateTemplate:
    """Tests for template validation."""

    def test_valid(self) -> None:
        validate_template(VALID_TEMPLATE)

    def test_missing_placeholders_listed(self) -> None:
        with pytest.raises(TemplateError) as exc_info:
            validate_template("{% for scan in scans %}{{ scan.url }}{% endfor %}")

        message = str(exc_info.value)
        assert "{{ wcag_level }}" in message
        assert "{{ scan.scan_id }}" in message
        assert "{{ scan.url }}" not in message

    def test_syntax_error(self) -> None:
        with pytest.raises(TemplateError) as exc_info:
            validate_template(VALID_TEMPLATE + "{% if %}")

        assert "syntax" in str(exc_info.value)
