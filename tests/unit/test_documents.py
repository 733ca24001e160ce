"""
Unit tests for document assembly and markdown rendering.

Timestamps are pinned through the `now` parameter so file names and
metadata are deterministic.
"""

import re
from datetime import datetime, timezone

import pytest

from src.core.analysis.models import (
    AnalysisResult,
    Level,
    RPAAction,
    TechnicalNotes,
    TestCase as CaseModel,
    TestCaseType as CaseType,
)
from src.core.analysis.validation import validate_analysis_data
from src.core.documents import (
    DocumentStatus,
    OutputFormat,
    TemplateType,
    build_document,
    generate_file_name,
    get_template,
    group_test_cases,
    list_templates,
    prepare_document,
    render_markdown,
)
from src.core.documents.builder import assess_risk, estimate_complexity

NOW = datetime(2026, 10, 18, 9, 30, 0, tzinfo=timezone.utc)


def _actions(count: int) -> tuple[RPAAction, ...]:
    return tuple(
        RPAAction(id=f"a{i}", step=i + 1, description=f"Step {i}", action_type="Click")
        for i in range(count)
    )


def _case(case_id: str, kind: CaseType) -> CaseModel:
    return CaseModel(id=case_id, type=kind, title=f"Case {case_id}", description="d")


@pytest.fixture
def analysis(analysis_payload) -> AnalysisResult:
    return validate_analysis_data(analysis_payload).result


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class TestBuildDocument:
    """Tests for mapping an analysis into a ProcessDocument."""

    def test_metadata_from_inputs(self, analysis):
        document = build_document("Invoice Entry", analysis, author="QA Team", now=NOW)

        assert document.metadata.process_name == "Invoice Entry"
        assert document.metadata.author == "QA Team"
        assert document.metadata.version == "1.0"
        assert document.metadata.status is DocumentStatus.DRAFT
        assert document.metadata.created_at == NOW
        assert document.metadata.updated_at == NOW
        assert document.rpa_actions == analysis.rpa_actions

    def test_default_author(self, analysis):
        document = build_document("Invoice Entry", analysis, now=NOW)
        assert document.metadata.author == "Automated RPA Analysis System"

    def test_requires_process_name(self, analysis):
        with pytest.raises(ValueError, match="process_name"):
            build_document("  ", analysis)

    def test_technical_notes_drive_the_assessment(self, analysis):
        document = build_document("Invoice Entry", analysis, now=NOW)

        assert document.complexity is Level.MEDIUM
        assert document.estimated_development_time == "2-3 days"
        assert "UI changes" in document.risk_assessment


class TestDerivedAssessment:
    """Tests for the fallbacks used when the model gives no notes."""

    @pytest.mark.parametrize("count, expected", [
        (0, Level.LOW),
        (5, Level.LOW),
        (6, Level.MEDIUM),
        (15, Level.MEDIUM),
        (16, Level.HIGH),
    ])
    def test_complexity_from_action_count(self, count, expected):
        assert estimate_complexity(AnalysisResult(summary="s", rpa_actions=_actions(count))) is expected

    def test_development_time_follows_complexity(self):
        document = build_document("P", AnalysisResult(summary="s", rpa_actions=_actions(20)), now=NOW)
        assert document.estimated_development_time == "1-2 weeks"

    @pytest.mark.parametrize("confidence, prefix", [
        (90, "Low risk"),
        (60, "Medium risk"),
        (10, "High risk"),
    ])
    def test_risk_from_confidence(self, confidence, prefix):
        assert assess_risk(AnalysisResult(summary="s", confidence=confidence)).startswith(prefix)

    def test_notes_without_complexity_fall_back_to_count(self):
        result = AnalysisResult(
            summary="s",
            rpa_actions=_actions(7),
            technical_notes=TechnicalNotes(estimated_development_time="a week"),
        )
        assert estimate_complexity(result) is Level.MEDIUM


class TestGenerateFileName:
    """Tests for output file naming."""

    def test_sanitizes_and_timestamps(self):
        name = generate_file_name("Invoice Entry (SAP)!", OutputFormat.MARKDOWN, NOW, suffix="1a2b3c4d")
        assert name == "functional_analysis_invoice_entry_sap_20261018T093000_1a2b3c4d.md"

    def test_extension_follows_format(self):
        assert generate_file_name("P", OutputFormat.EXCEL, NOW).endswith(".xlsx")
        assert generate_file_name("P", OutputFormat.JSON, NOW).endswith(".json")

    def test_name_with_only_symbols(self):
        name = generate_file_name("!!!", OutputFormat.JSON, NOW, suffix="1a2b3c4d")
        assert name == "functional_analysis_20261018T093000_1a2b3c4d.json"

    def test_default_suffix_is_random_hex(self):
        name = generate_file_name("Invoice Entry", OutputFormat.MARKDOWN, NOW)
        assert re.fullmatch(r"functional_analysis_invoice_entry_20261018T093000_[0-9a-f]{8}\.md", name)

    def test_same_process_same_second_gets_distinct_names(self):
        names = {generate_file_name("Invoice", OutputFormat.JSON, NOW) for _ in range(20)}
        assert len(names) == 20


class TestTemplates:
    """Tests for the template registry."""

    def test_lists_all_templates(self):
        assert [t.id for t in list_templates()] == ["standard", "detailed", "minimal"]

    def test_unknown_template_is_none(self):
        assert get_template("fancy") is None
        assert get_template("detailed").type is TemplateType.DETAILED


class TestPrepareDocument:
    """Tests for building plus rendering in one step."""

    def test_markdown_is_rendered_for_markdown_output(self, analysis):
        prepared = prepare_document("Invoice Entry", analysis, now=NOW)

        assert prepared.markdown.startswith("# 📋 Functional Analysis Document - Invoice Entry")
        assert re.search(r"_20261018T093000_[0-9a-f]{8}\.md$", prepared.file_name)

    def test_nothing_rendered_for_other_formats(self, analysis):
        prepared = prepare_document("Invoice Entry", analysis, output_format=OutputFormat.JSON, now=NOW)
        assert prepared.markdown is None


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------

class TestGroupTestCases:
    """Tests for test case grouping order."""

    def test_groups_in_canonical_order(self):
        cases = (
            _case("e1", CaseType.EDGE),
            _case("n1", CaseType.NEGATIVE),
            _case("p1", CaseType.POSITIVE),
            _case("e2", CaseType.EDGE),
        )

        groups = group_test_cases(cases)

        assert [kind for kind, _ in groups] == [CaseType.POSITIVE, CaseType.NEGATIVE, CaseType.EDGE]
        assert [c.id for c in groups[2][1]] == ["e1", "e2"]

    def test_empty_groups_are_omitted(self):
        groups = group_test_cases((_case("n1", CaseType.NEGATIVE),))
        assert [kind for kind, _ in groups] == [CaseType.NEGATIVE]


class TestRenderMarkdown:
    """Tests for markdown structure."""

    def test_sections_in_fixed_order(self, analysis):
        markdown = render_markdown(build_document("Invoice Entry", analysis, now=NOW))

        headings = [
            "## 📊 1. General Information",
            "## 🎯 2. Executive Summary",
            "## 🤖 3. Identified RPA Actions",
            "## 🧪 4. Test Cases",
            "## 💡 5. Recommendations",
            "## 📚 6. Appendix",
        ]
        positions = [markdown.index(heading) for heading in headings]
        assert positions == sorted(positions)

    def test_actions_have_attribute_tables(self, analysis):
        markdown = render_markdown(build_document("Invoice Entry", analysis, now=NOW))

        assert "### 3.1 Action 1: Click the login button" in markdown
        assert "| **Type** | `ClickElement` |" in markdown
        assert '"clickType": "LeftClick"' in markdown

    def test_no_recommendations_message(self):
        document = build_document("P", AnalysisResult(summary="s"), now=NOW)
        assert "No specific recommendations identified." in render_markdown(document)

    def test_positive_cases_rendered_before_edge_cases(self):
        result = AnalysisResult(
            summary="s",
            test_cases=(_case("e1", CaseType.EDGE), _case("p1", CaseType.POSITIVE)),
        )
        markdown = render_markdown(build_document("P", result, now=NOW))

        assert markdown.index("Positive Test Cases") < markdown.index("Edge Cases")
        assert "4.1 Positive Test Cases" in markdown
        assert "4.2 Edge Cases" in markdown

    def test_minimal_template_omits_boilerplate(self, analysis):
        document = build_document("P", analysis, now=NOW)

        standard = render_markdown(document, TemplateType.STANDARD)
        minimal = render_markdown(document, TemplateType.MINIMAL)

        assert "Expected Benefits" in standard
        assert "Expected Benefits" not in minimal
        assert "General Best Practices" not in minimal

    def test_detailed_template_adds_error_handling_and_links(self, analysis):
        document = build_document("P", analysis, now=NOW)

        standard = render_markdown(document, TemplateType.STANDARD)
        detailed = render_markdown(document, TemplateType.DETAILED)

        assert "**Error Handling**" not in standard
        assert "**Error Handling**" in detailed
        assert "*RPA action*: `action_001`" in detailed
        assert "**Data Requirements**" in detailed

    def test_pipes_in_free_text_are_escaped(self):
        result = AnalysisResult(
            summary="s",
            rpa_actions=(RPAAction(id="a", step=1, description="d", action_type="Type|Text"),),
        )
        markdown = render_markdown(build_document("P", result, now=NOW))

        assert "`Type\\|Text`" in markdown
