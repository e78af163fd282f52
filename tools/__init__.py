# =============================================================================
# tools/__init__.py
# =============================================================================
# The MCP layer between the agent and core/:
#
#   schemas.py     pydantic argument models, one per tool
#   handlers.py    validate -> call core/ -> JSON envelope
#   mcp_server.py  FastMCP registration, logging and startup
#
# Handlers contain no business logic of their own; they compose core/
# functions and decide how errors reach the agent.
# =============================================================================
