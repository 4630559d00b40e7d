"""Extract and normalize scan results from agent output.

The agent is asked for a JSON object with a "results" array, but replies may
wrap it in a markdown fence, surround it with prose, or return a bare array.
Extraction strategies are tried in order until one yields results:

1. Direct json.loads on the whole output
2. ```json fenced block
3. Object containing a "results" array
4. Bare array of objects
5. Balanced-brace scan for the first parseable object
"""

import json
import logging
import re
import uuid
from typing import Any

from pydantic import ValidationError

from ai_scan.models.model_scan import ComplianceLevel, ImpactLevel, Issue, ScanResult

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```json\s*\n([\s\S]*)")
_FENCED_ANY = re.compile(r"```\s*\n?([\s\S]*?)```")
_RESULTS_OBJECT = re.compile(r"\{\s*\"wcagLevel\"[\s\S]*\"results\"\s*:\s*\[[\s\S]*\]\s*\}")
_ARRAY = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")

_VALID_IMPACTS = {impact.value for impact in ImpactLevel}
_VALID_LEVELS = {level.value for level in ComplianceLevel}


def _try_json(text: str) -> Any | None:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None


def extract_json_from_markdown(output: str) -> str | None:
    """Pull a JSON payload out of a markdown code fence.

    A ```json fence is read up to the LAST closing fence, so code blocks
    embedded in JSON string values do not cut it short.

    Args:
        output: Raw agent output

    Returns:
        JSON text, or None if no fenced JSON was found
    """
    match = _FENCED_JSON.search(output)
    if match:
        content = match.group(1)
        last_fence = content.rfind("\n```")
        if last_fence != -1:
            candidate = content[:last_fence].strip()
            if _try_json(candidate) is not None:
                return candidate

    match = _FENCED_ANY.search(output)
    if match and match.group(1):
        candidate = match.group(1).strip()
        if candidate.startswith("{") or candidate.startswith("["):
            return candidate

    return None


def extract_json_by_brace_matching(output: str) -> str | None:
    """Find the first balanced {...} span that parses as JSON.

    Braces inside string literals and escaped characters are ignored.

    Args:
        output: Raw output mixing prose and JSON

    Returns:
        JSON text, or None if no parseable object was found
    """
    start = output.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escape_next = False

        for i in range(start, len(output)):
            char = output[i]
            if escape_next:
                escape_next = False
                continue
            if char == "\\":
                escape_next = True
                continue
            if char == '"':
                in_string = not in_string
                continue
            if in_string:
                continue
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    candidate = output[start : i + 1]
                    if _try_json(candidate) is not None:
                        return candidate
                    break

        start = output.find("{", start + 1)

    return None


def _extract_results_array(parsed: Any) -> list[Any]:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        if isinstance(parsed.get("results"), list):
            return parsed["results"]
        return [parsed]
    return []


def _str_field(raw: dict[str, Any], key: str) -> str:
    value = raw.get(key)
    return value if isinstance(value, str) else ""


def normalize_issue(raw_issue: Any) -> Issue | None:
    """Normalize one raw issue object.

    Args:
        raw_issue: Issue dict from agent output

    Returns:
        Issue with a fresh id, or None if the issue has no description
    """
    if not isinstance(raw_issue, dict):
        return None

    description = raw_issue.get("description")
    if not isinstance(description, str) or not description:
        return None

    impact = raw_issue.get("impact")
    if not isinstance(impact, str) or impact not in _VALID_IMPACTS:
        impact = ImpactLevel.MODERATE.value

    priority = raw_issue.get("aiPriority")
    if isinstance(priority, bool) or not isinstance(priority, (int, float)) or not 1 <= priority <= 10:
        priority = 5

    help_url = raw_issue.get("helpUrl")

    return Issue(
        id=str(uuid.uuid4()),
        rule_id=_str_field(raw_issue, "ruleId"),
        relevant_criterion=_str_field(raw_issue, "wcagCriteria"),
        impact=ImpactLevel(impact),
        description=description,
        help_text=_str_field(raw_issue, "helpText"),
        help_url="" if help_url is None else str(help_url),
        html_snippet=_str_field(raw_issue, "htmlSnippet"),
        selector=_str_field(raw_issue, "cssSelector"),
        ai_explanation=_str_field(raw_issue, "aiExplanation"),
        ai_fix_suggestion=_str_field(raw_issue, "aiFixSuggestion"),
        ai_priority=round(priority),
    )


def normalize_issues(raw_issues: Any) -> list[Issue]:
    """Normalize an issue list, dropping unusable entries."""
    if not isinstance(raw_issues, list):
        return []
    issues = []
    for raw_issue in raw_issues:
        issue = normalize_issue(raw_issue)
        if issue is not None:
            issues.append(issue)
    return issues


def format_summary(summary: Any) -> str:
    """Render a summary (plain text or structured object) as text."""
    if summary is None:
        return ""
    if isinstance(summary, str):
        return summary
    if not isinstance(summary, dict):
        return json.dumps(summary)

    parts = []
    if summary.get("totalIssues") is not None:
        parts.append(f"Found {summary['totalIssues']} accessibility issues.")
    if isinstance(summary.get("criticalIssues"), (int, float)) and summary["criticalIssues"] > 0:
        parts.append(f"{summary['criticalIssues']} critical issues require immediate attention.")
    if isinstance(summary.get("seriousIssues"), (int, float)) and summary["seriousIssues"] > 0:
        parts.append(f"{summary['seriousIssues']} serious issues significantly impact accessibility.")
    if summary.get("overallCompliance") is not None:
        parts.append(f"Overall compliance: {summary['overallCompliance']}.")
    if summary.get("complianceScore") is not None:
        parts.append(f"Compliance score: {summary['complianceScore']}%.")

    return " ".join(parts) if parts else json.dumps(summary)


def format_remediation_plan(plan: Any) -> str:
    """Render a remediation plan (plain text or phased object) as text."""
    if plan is None:
        return ""
    if isinstance(plan, str):
        return plan
    if not isinstance(plan, dict):
        return json.dumps(plan)

    sections: list[str] = []
    for key, heading in (
        ("quickWins", "QUICK WINS (immediate fixes):"),
        ("shortTerm", "SHORT-TERM IMPROVEMENTS:"),
        ("longTerm", "LONG-TERM CHANGES:"),
    ):
        items = plan.get(key)
        if isinstance(items, list) and items:
            if sections:
                sections.append("")
            sections.append(heading)
            sections.extend(f"  {i}. {item}" for i, item in enumerate(items, start=1))

    if plan.get("estimatedEffort") is not None:
        sections.append(f"\nEstimated effort: {plan['estimatedEffort']}")

    return "\n".join(sections) if sections else json.dumps(plan)


def normalize_scan_result(raw: Any) -> ScanResult | None:
    """Normalize one raw result object.

    Args:
        raw: Result dict from agent output

    Returns:
        ScanResult, or None if the result has no usable scanId
    """
    if not isinstance(raw, dict):
        return None

    scan_id = raw.get("scanId")
    if scan_id is None or str(scan_id).strip() == "":
        logger.debug("Dropping agent result without scanId")
        return None

    wcag_level = raw.get("wcagLevel")
    if wcag_level not in _VALID_LEVELS:
        wcag_level = ComplianceLevel.AA.value

    try:
        return ScanResult(
            scan_id=str(scan_id).strip(),
            url=_str_field(raw, "url"),
            page_title=_str_field(raw, "pageTitle"),
            wcag_level=ComplianceLevel(wcag_level),
            summary=format_summary(raw.get("summary")),
            remediation_plan=format_remediation_plan(raw.get("remediationPlan")),
            issues=normalize_issues(raw.get("issues")),
        )
    except ValidationError as e:
        logger.debug(f"Dropping malformed result for scan {scan_id}: {e}")
        return None


def _find_raw_results(output: str) -> list[Any]:
    parsed = _try_json(output)
    if parsed is not None:
        results = _extract_results_array(parsed)
        if results:
            return results

    extracted = extract_json_from_markdown(output)
    if extracted:
        results = _extract_results_array(_try_json(extracted))
        if results:
            return results

    match = _RESULTS_OBJECT.search(output)
    if match:
        results = _extract_results_array(_try_json(match.group(0)))
        if results:
            return results

    match = _ARRAY.search(output)
    if match:
        parsed = _try_json(match.group(0))
        if isinstance(parsed, list) and parsed:
            return parsed

    extracted = extract_json_by_brace_matching(output)
    if extracted:
        return _extract_results_array(_try_json(extracted))

    return []


def parse_agent_output(output: str) -> list[ScanResult]:
    """Parse agent output into normalized scan results.

    Args:
        output: Raw stdout from the agent

    Returns:
        Parsed results in output order; empty if nothing could be extracted
    """
    raw_results = _find_raw_results(output or "")
    if not raw_results:
        logger.warning("No JSON results found in agent output")
        return []

    results = []
    for raw in raw_results:
        result = normalize_scan_result(raw)
        if result is not None:
            results.append(result)
    return results
