# =============================================================================
# core/__init__.py
# =============================================================================
# Business logic for the Salesforce MCP server: pagination, metadata
# simplification, SOQL building, the record client and the analytics engine.
#
# Nothing in this package imports FastMCP.  The analytics modules are pure
# functions over plain records and can be exercised without a Salesforce
# connection; backend.py is the only module that talks to Salesforce.
# =============================================================================
