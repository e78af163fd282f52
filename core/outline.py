# =============================================================================
# core/outline.py  -  Business-case document outline
# =============================================================================
#
# generate_document_outline() makes no backend call.  It returns a plan the
# agent follows: which tools to call for data, a markdown template with
# [Placeholders], how to fill each placeholder, and where to export.
# =============================================================================

from typing import Optional

from core.query_builder import escape_literal

OUTPUT_FORMATS = ("pdf", "docx", "markdown")
DEFAULT_OUTPUT_FORMAT = "pdf"

_EXTENSIONS = {"pdf": "pdf", "docx": "docx", "markdown": "md"}

BUSINESS_CASE_TEMPLATE = """\
# Business Case: [Opportunity Name]

## Executive Summary
**Client**: [Account Name]
**Opportunity**: [Opportunity Name]
**Value**: $[Amount]
**Stage**: [Stage] ([Probability]%)
**Target Close**: [Close Date]

## Client Profile
- **Company**: [Account Name]
- **Industry**: [Industry]
- **Website**: [Website]
- **Key Contacts**: [Key Contacts]

## Engagement Overview
- **Recorded Calls**: [Call Count]
- **Email Exchanges**: [Inbound/Outbound Counts]
- **Last Activity**: [Last Activity Date]
- **Call Topics**: [Call Topics]

## Value Proposition
Based on similar successful engagements averaging $[Similar Deal Average], this engagement will deliver:

- **Faster Delivery**: [Delivery Outcome]
- **Quality Improvement**: [Quality Outcome]
- **Team Alignment**: [Alignment Outcome]
- **Measurable ROI**: [ROI Timeline]

## Success Pattern Analysis
From [Similar Deal Count] similar wins:
- **Average Deal Size**: $[Similar Deal Average]
- **Common Industries**: [Top Industries]
- **Typical Timeline**: [Typical Timeline]

## Recommended Next Steps
[Next Steps]

## Risk Mitigation
- Start with a pilot team to prove value
- Phased implementation reduces disruption
- Ongoing support ensures sustained adoption

**Prepared**: [Current Date]
**Opportunity ID**: [Opportunity ID]
"""

INTEGRATION_NOTES = [
    "Replace [Opportunity Name], [Stage], [Probability] and [Close Date] from get_record_details basic_info",
    "Replace [Account Name], [Industry] and [Website] from get_record_details account",
    "Replace [Amount] with the opportunity amount, formatted with thousands separators",
    "Replace [Key Contacts] with the names and roles from the contact role query",
    "Replace [Call Count] with insights.call_count from analyze_engagement",
    "Replace [Inbound/Outbound Counts] with insights.email_exchanges",
    "Replace [Last Activity Date] with insights.last_activity_date",
    "Replace [Call Topics] with insights.call_topics joined by commas",
    "Replace [Similar Deal Average], [Similar Deal Count] and [Top Industries] from the similar won deals",
    "Replace [Next Steps] with the analyze_engagement recommendations",
    "Replace [Current Date] with today's date and [Opportunity ID] with the record ID",
    "Fill any remaining placeholder with a sensible default or 'TBD'",
]

TIPS = [
    "Format currency with thousands separators (e.g. $30,000)",
    "Format dates consistently (e.g. 'July 30, 2025')",
    "If any data is missing, use sensible defaults or 'TBD'",
    "Calculate averages and percentages from similar deals for benchmarking",
    "Include specific call topics and engagement details to show an active relationship",
    "Use the engagement recommendations to write actionable next steps",
]


def output_path(record_id: str, output_format: str) -> str:
    return f"business_case_{record_id}.{_EXTENSIONS[output_format]}"


def data_gathering_steps(record_id: str) -> list[dict]:
    literal = escape_literal(record_id)
    return [
        {
            "tool": "get_record_details",
            "params": {"record_id": record_id},
            "purpose": "Core opportunity information: stage, amount, close date and account details",
        },
        {
            "tool": "analyze_engagement",
            "params": {"record_id": record_id},
            "purpose": "Engagement patterns, call history and communication insights",
        },
        {
            "tool": "execute_query",
            "params": {
                "query": (
                    "SELECT Contact.Name, Contact.Title, Contact.Email, Contact.Phone, Role "
                    f"FROM OpportunityContactRole WHERE OpportunityId = '{literal}'"
                ),
            },
            "purpose": "Key stakeholders and decision makers",
        },
        {
            "tool": "find_similar_records",
            "params": {"reference_record_id": record_id, "is_won": True, "limit": 10},
            "purpose": "Similar successful deals for pattern analysis and benchmarking",
        },
    ]


def generate_document_outline(
    record_id: str,
    client_name: Optional[str] = None,
    output_format: Optional[str] = None,
) -> dict:
    """Plan for assembling a business-case document for one opportunity.

    Args:
        record_id: The opportunity the document is about.
        client_name: Optional display name, echoed back for the template.
        output_format: "pdf", "docx" or "markdown" (default "pdf").

    Returns:
        A dict with the data-gathering steps, the markdown template, the
        export target, placeholder notes and writing tips.
    """
    output_format = output_format or DEFAULT_OUTPUT_FORMAT
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(f"output_format must be one of {', '.join(OUTPUT_FORMATS)}")

    return {
        "success": True,
        "record_id": record_id,
        "client_name": client_name,
        "output_format": output_format,
        "steps": [
            {"step": 1, "name": "Data Collection", "actions": data_gathering_steps(record_id)},
            {
                "step": 2,
                "name": "Document Generation",
                "template": BUSINESS_CASE_TEMPLATE,
                "export": {
                    "format": output_format,
                    "output_path": output_path(record_id, output_format),
                },
            },
            {"step": 3, "name": "Data Integration", "notes": INTEGRATION_NOTES},
        ],
        "tips": TIPS,
    }
