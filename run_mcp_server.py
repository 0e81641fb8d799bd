"""
Run the Form Master MCP server from a source checkout.

Same as the installed ``form-master-mcp`` command; see ``--help``.
"""

import sys
from pathlib import Path

# Add src to path for local development
sys.path.insert(0, str(Path(__file__).parent / "src"))

from form_master.mcp_server.cli import main

if __name__ == "__main__":
    main()
