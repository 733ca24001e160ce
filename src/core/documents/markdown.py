"""
Markdown rendering of a ProcessDocument.

Section order is fixed regardless of template:
1. General information
2. Executive summary
3. Identified RPA actions
4. Test cases, grouped by type
5. Recommendations
6. Appendix (glossary and technical information)

The template type only changes how much detail each section carries.
"""

import json
from typing import Any

from ..analysis.models import RPAAction, TestCase, TestCaseType, thaw
from .models import ProcessDocument, TemplateType

# canonical emission order for test case groups
TEST_CASE_GROUP_ORDER = (TestCaseType.POSITIVE, TestCaseType.NEGATIVE, TestCaseType.EDGE)

_GROUP_TITLES = {
    TestCaseType.POSITIVE: "Positive Test Cases",
    TestCaseType.NEGATIVE: "Negative Test Cases",
    TestCaseType.EDGE: "Edge Cases",
}

_GROUP_MARKERS = {
    TestCaseType.POSITIVE: "✅",
    TestCaseType.NEGATIVE: "❌",
    TestCaseType.EDGE: "⚠️",
}


def group_test_cases(test_cases: tuple[TestCase, ...]) -> list[tuple[TestCaseType, list[TestCase]]]:
    """
    Group test cases by type in canonical order (positive, negative, edge).

    Order within a group is input order. Empty groups are left out.
    """
    groups: dict[TestCaseType, list[TestCase]] = {kind: [] for kind in TEST_CASE_GROUP_ORDER}
    for test_case in test_cases:
        groups[test_case.type].append(test_case)

    return [(kind, groups[kind]) for kind in TEST_CASE_GROUP_ORDER if groups[kind]]


def render_markdown(
    document: ProcessDocument,
    template_type: TemplateType = TemplateType.STANDARD,
) -> str:
    sections = [
        _title(document),
        _general_info(document),
        _executive_summary(document, template_type),
        _rpa_actions(document, template_type),
        _test_cases(document, template_type),
        _recommendations(document, template_type),
        _appendix(document),
    ]
    return "".join(sections)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def _title(document: ProcessDocument) -> str:
    return f"# 📋 Functional Analysis Document - {document.metadata.process_name}\n\n"


def _general_info(document: ProcessDocument) -> str:
    meta = document.metadata
    lines = [
        "## 📊 1. General Information\n",
        "| Field | Value |",
        "|-------|-------|",
        f"| **Process Name** | {_cell(meta.process_name)} |",
        f"| **Created** | {meta.created_at.strftime('%Y-%m-%d')} |",
        f"| **Version** | {_cell(meta.version)} |",
        f"| **Author** | {_cell(meta.author)} |",
        f"| **Status** | {meta.status.value} |",
        f"| **RPA Actions** | {len(document.rpa_actions)} |",
        f"| **Test Cases** | {len(document.test_cases)} |",
        f"| **Complexity** | {document.complexity.value} |",
        f"| **Estimated Development Time** | {_cell(document.estimated_development_time)} |",
        f"| **Analysis Confidence** | {document.confidence}% |",
    ]
    return "\n".join(lines) + "\n\n"


def _executive_summary(document: ProcessDocument, template_type: TemplateType) -> str:
    process_name = document.metadata.process_name
    content = "## 🎯 2. Executive Summary\n\n"
    content += "### Objective\n"
    content += (
        f'This document presents the functional analysis of the process "{process_name}" '
        "for implementing an RPA automation with Microsoft Power Automate Desktop.\n\n"
    )
    content += "### Analysis Results\n"
    content += f"{document.summary}\n\n"
    content += "### Risk Assessment\n"
    content += f"{document.risk_assessment}\n\n"

    if template_type is not TemplateType.MINIMAL:
        content += "### Expected Benefits\n"
        content += "- ⚡ Shorter process execution time\n"
        content += "- 🎯 No more manual errors\n"
        content += "- 📊 Better traceability of operations\n"
        content += "- 👥 People freed for higher-value work\n\n"

    return content


def _rpa_actions(document: ProcessDocument, template_type: TemplateType) -> str:
    content = "## 🤖 3. Identified RPA Actions\n\n"
    content += "### Overview\n"
    content += (
        f"**{len(document.rpa_actions)}** automatable actions were identified in the process.\n\n"
    )

    for index, action in enumerate(document.rpa_actions, 1):
        content += _action_section(index, action, template_type)

    return content


def _action_section(index: int, action: RPAAction, template_type: TemplateType) -> str:
    rows = [
        ("ID", f"`{action.id}`"),
        ("Type", f"`{_cell(action.action_type)}`"),
        ("Category", action.category.value),
    ]

    if action.target is not None:
        rows.append(("Target", _embedded_json(action.target.to_dict())))
    if action.parameters:
        rows.append(("Parameters", _embedded_json(thaw(action.parameters))))
    if action.prerequisites:
        rows.append(("Prerequisites", "<br>".join(_cell(p) for p in action.prerequisites)))

    if template_type is TemplateType.DETAILED:
        if action.error_handling is not None:
            rows.append(("Error Handling", _embedded_json(action.error_handling.to_dict())))
        if action.validation is not None:
            rows.append(("Validation", _embedded_json(action.validation.to_dict())))
        if action.estimated_duration:
            rows.append(("Estimated Duration", _cell(action.estimated_duration)))
        if action.risk_level is not None:
            rows.append(("Risk Level", action.risk_level.value))

    content = f"### 3.{index} Action {action.step}: {action.description}\n\n"
    content += "| Attribute | Value |\n"
    content += "|-----------|-------|\n"
    for label, value in rows:
        content += f"| **{label}** | {value} |\n"
    return content + "\n"


def _test_cases(document: ProcessDocument, template_type: TemplateType) -> str:
    content = "## 🧪 4. Test Cases\n\n"

    if not document.test_cases:
        return content + "No test cases identified.\n\n"

    for group_index, (kind, cases) in enumerate(group_test_cases(document.test_cases), 1):
        content += f"### {_GROUP_MARKERS[kind]} 4.{group_index} {_GROUP_TITLES[kind]}\n\n"
        for test_case in cases:
            content += _test_case_section(test_case, template_type)

    return content


def _test_case_section(test_case: TestCase, template_type: TemplateType) -> str:
    content = f"#### Test Case {test_case.id}: {test_case.title}\n\n"
    content += "| Attribute | Value |\n"
    content += "|-----------|-------|\n"
    content += f"| **Type** | {test_case.type.value.upper()} |\n"
    content += f"| **Category** | {test_case.category.value} |\n"
    content += f"| **Priority** | {test_case.priority.value.upper()} |\n"
    content += f"| **Description** | {_cell(test_case.description)} |\n"

    if test_case.preconditions:
        preconditions = "<br>".join(_cell(p) for p in test_case.preconditions)
        content += f"| **Preconditions** | {preconditions} |\n"
    if template_type is TemplateType.DETAILED:
        if test_case.data_requirements:
            content += f"| **Data Requirements** | {_embedded_json(thaw(test_case.data_requirements))} |\n"
        if test_case.estimated_duration:
            content += f"| **Estimated Duration** | {_cell(test_case.estimated_duration)} |\n"

    if test_case.steps:
        content += "\n**Steps:**\n"
        for step in test_case.steps:
            content += f"{step.step}. {step.action}\n"
            content += f"   - *Expected result*: {step.expected_result}\n"
            if template_type is TemplateType.DETAILED and step.rpa_action_id:
                content += f"   - *RPA action*: `{step.rpa_action_id}`\n"

    if test_case.expected_result:
        content += f"\n**Final Result**: {test_case.expected_result}\n"

    return content + "\n---\n\n"


def _recommendations(document: ProcessDocument, template_type: TemplateType) -> str:
    content = "## 💡 5. Recommendations\n\n"
    content += "### Specific Recommendations\n"

    if document.recommendations:
        for index, recommendation in enumerate(document.recommendations, 1):
            content += f"{index}. {recommendation}\n"
    else:
        content += "No specific recommendations identified.\n"

    if template_type is not TemplateType.MINIMAL:
        content += "\n### General Best Practices\n"
        content += "- 📝 Log every operation in detail\n"
        content += "- ⏱️ Configure suitable timeouts to avoid hangs\n"
        content += "- 🎯 Use robust selectors for UI elements\n"
        content += "- 🔄 Add retry logic to critical operations\n"
        content += "- 📦 Keep the RPA code under version control\n"

    return content + "\n"


def _appendix(document: ProcessDocument) -> str:
    content = "## 📚 6. Appendix\n\n"
    content += "### Glossary\n"
    content += "- **RPA**: Robotic Process Automation - software-driven automation of manual workflows\n"
    content += "- **Power Automate Desktop**: Microsoft platform for desktop process automation\n"
    content += "- **UI Automation**: automation of the user interface\n\n"

    content += "### Technical Information\n"
    content += "| Field | Value |\n"
    content += "|-------|-------|\n"
    content += "| Analysis Tool | Vision language model frame analysis |\n"
    content += "| Extraction Method | Automatic video frame sampling |\n"
    content += f"| Generated | {document.metadata.created_at.isoformat()} |\n"
    content += "| Document Format | Markdown (.md) |\n\n"

    content += "---\n"
    content += "*Document generated automatically by the RPA Analysis System*\n"
    return content


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _cell(value: str) -> str:
    """Keep free text from breaking out of a table cell."""
    return value.replace("|", "\\|").replace("\n", "<br>")


def _embedded_json(value: Any) -> str:
    return f"`{_cell(json.dumps(value, ensure_ascii=False, default=str))}`"
