# =============================================================================
# core/opportunity.py  -  Opportunity detail and search projections
# =============================================================================
#
# Turns raw Opportunity rows (with their related-list subqueries) into the
# readable snake_case shapes the tools return.
# =============================================================================

from typing import Any, Mapping, Optional

from core.query_builder import escape_literal

DETAIL_FIELDS = [
    "Id", "Name", "Amount", "Type", "StageName", "Probability", "CloseDate", "Description",
    "LeadSource", "NextStep", "ForecastCategory", "ExpectedRevenue", "TotalOpportunityQuantity",
    "HasOpportunityLineItem", "IsClosed", "IsWon", "LastActivityDate",
    "Account.Name", "Account.Industry", "Account.Website",
    "Owner.Name", "Owner.Email",
]

DETAIL_SUBQUERIES = [
    "(SELECT Id, ContactId, Contact.Name, Contact.Email, Role FROM OpportunityContactRoles)",
    "(SELECT Id, CreatedDate, Field, OldValue, NewValue FROM Histories ORDER BY CreatedDate DESC)",
    "(SELECT Id, Title, Body, CreatedDate, CreatedBy.Name FROM Notes ORDER BY CreatedDate DESC)",
    "(SELECT Id, Subject, Status, Priority, CreatedDate FROM Tasks ORDER BY CreatedDate DESC)",
]


def build_details_query(record_id: str) -> str:
    fields = ", ".join(DETAIL_FIELDS + DETAIL_SUBQUERIES)
    return f"SELECT {fields} FROM Opportunity WHERE Id = '{escape_literal(record_id)}'"


def _related(record: Mapping[str, Any], name: str) -> list[dict]:
    # Related lists arrive as {"totalSize": n, "records": [...]} or None.
    related = record.get(name)
    if isinstance(related, Mapping):
        return list(related.get("records") or [])
    return []


def _get(mapping: Optional[Mapping[str, Any]], key: str) -> Any:
    return mapping.get(key) if isinstance(mapping, Mapping) else None


def _newest_first(rows: list[dict], key: str) -> list[dict]:
    return sorted(rows, key=lambda row: row.get(key) or "", reverse=True)


def _account(record: Mapping[str, Any]) -> Optional[dict]:
    account = record.get("Account")
    if not isinstance(account, Mapping):
        return None
    return {
        "name": account.get("Name"),
        "industry": account.get("Industry"),
        "website": account.get("Website"),
    }


def _owner(record: Mapping[str, Any]) -> Optional[dict]:
    owner = record.get("Owner")
    if not isinstance(owner, Mapping):
        return None
    return {"name": owner.get("Name"), "email": owner.get("Email")}


def format_details(record: Mapping[str, Any]) -> dict:
    """Detail view: basic info, account, owner and the four related lists.

    Related lists are sorted newest first.  Timestamps are ISO strings, so
    they sort lexically.
    """
    contacts = [
        {
            "name": _get(role.get("Contact"), "Name"),
            "email": _get(role.get("Contact"), "Email"),
            "role": role.get("Role"),
        }
        for role in _related(record, "OpportunityContactRoles")
    ]
    history = [
        {
            "date": row.get("CreatedDate"),
            "field": row.get("Field"),
            "old_value": row.get("OldValue"),
            "new_value": row.get("NewValue"),
        }
        for row in _related(record, "Histories")
    ]
    tasks = [
        {
            "subject": row.get("Subject"),
            "status": row.get("Status"),
            "priority": row.get("Priority"),
            "created_date": row.get("CreatedDate"),
        }
        for row in _related(record, "Tasks")
    ]
    notes = [
        {
            "title": row.get("Title"),
            "body": row.get("Body"),
            "created_date": row.get("CreatedDate"),
            "created_by": _get(row.get("CreatedBy"), "Name"),
        }
        for row in _related(record, "Notes")
    ]

    return {
        "basic_info": {
            "id": record.get("Id"),
            "name": record.get("Name"),
            "amount": record.get("Amount"),
            "stage": record.get("StageName"),
            "probability": record.get("Probability"),
            "close_date": record.get("CloseDate"),
            "type": record.get("Type"),
            "description": record.get("Description"),
            "next_step": record.get("NextStep"),
            "forecast_category": record.get("ForecastCategory"),
            "expected_revenue": record.get("ExpectedRevenue"),
            "lead_source": record.get("LeadSource"),
            "is_closed": record.get("IsClosed"),
            "is_won": record.get("IsWon"),
            "last_activity_date": record.get("LastActivityDate"),
        },
        "account": _account(record),
        "owner": _owner(record),
        "contacts": contacts,
        "history": _newest_first(history, "date"),
        "tasks": _newest_first(tasks, "created_date"),
        "notes": _newest_first(notes, "created_date"),
    }


def format_search_result(record: Mapping[str, Any]) -> dict:
    return {
        "id": record.get("Id"),
        "name": record.get("Name"),
        "stage": record.get("StageName"),
        "amount": record.get("Amount"),
        "expected_revenue": record.get("ExpectedRevenue"),
        "probability": record.get("Probability"),
        "close_date": record.get("CloseDate"),
        "type": record.get("Type"),
        "description": record.get("Description"),
        "account": _account(record),
        "owner": _owner(record),
    }
