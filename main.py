# =============================================================================
# main.py  -  Entry Point for the Salesforce MCP server
# =============================================================================
#
# HOW TO RUN:
#   python main.py
#   (or the installed script: salesforce-cloud-mcp)
#
# WHAT HAPPENS:
#   1. Loads environment variables from .env (SF_USERNAME, SF_PASSWORD, ...)
#   2. Builds the Salesforce client and logs in once
#   3. Serves every tool in tools/mcp_server.py over stdio until the MCP
#      client disconnects
#
# See core/config.py for the full list of environment variables.
# =============================================================================

from dotenv import load_dotenv

# Must run before tools.mcp_server is imported: the server reads its
# name from the environment at import time.
load_dotenv()

from tools.mcp_server import main  # noqa: E402


if __name__ == "__main__":
    main()
