"""
Command line entry point for the Form Master MCP server.

Usage:
    # Local agent talking over stdin/stdout
    form-master-mcp --transport stdio

    # Shared server; each client connects to /sse?session_id=<id>
    form-master-mcp --transport sse --port 8080
"""

import argparse
import asyncio
import sys

from form_master.config import FormMasterConfig, get_config
from form_master.mcp_server.server import run_mcp_server

EPILOG = """
Tools:
  classify_columns, validate_record, translate_server_error and
  map_extracted_data work on payloads passed in the call.
  process_document and close_session drive a form session against the
  backend (schemas, document upload, AI extraction, temp-file cleanup).

Sessions:
  stdio serves a single form session. Over SSE, pass ?session_id=<id> on
  /sse to get a session of your own; it is closed when the connection ends.

Environment Variables:
  FORM_MASTER_API_URL          Backend URL (default: http://localhost:3001)
  FORM_MASTER_TIMEOUT          Request timeout in seconds (default: 30)
  FORM_MASTER_POLL_INTERVAL    Seconds between document status polls (default: 2)
  FORM_MASTER_POLL_TIMEOUT     Give up polling after this many seconds (default: 300)
  FORM_MASTER_MAX_UPLOAD_MB    Upload size limit (default: 10)
  FORM_MASTER_DOCUMENTS_TABLE  Table holding document file paths (default: documents)
  FORM_MASTER_PROFILE_TABLE    Table inserted first on submit (default: personal_details)
  FORM_MASTER_LOG_LEVEL        Logging level (default: INFO)
  MCP_TRANSPORT                Transport type: stdio or sse (default: stdio)
  MCP_PORT                     Port for SSE transport (default: 8080)
"""


def build_parser(config: FormMasterConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="form-master-mcp",
        description="Form Master MCP server: schema-driven forms and document pre-fill",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default=config.mcp_transport,
        help=f"Transport type (default: {config.mcp_transport})",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host for SSE transport (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=config.mcp_port,
        help=f"Port for SSE transport (default: {config.mcp_port})",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    config = get_config()
    args = build_parser(config).parse_args(argv)

    # stdout carries the protocol in stdio mode
    out = sys.stderr if args.transport == "stdio" else sys.stdout
    print(f"Form Master MCP server ({args.transport}), backend {config.api_base_url}", file=out)
    if args.transport == "sse":
        print(f"Listening on http://{args.host}:{args.port}/sse", file=out)

    try:
        asyncio.run(run_mcp_server(transport=args.transport, host=args.host, port=args.port))
    except KeyboardInterrupt:
        print("Server stopped.", file=out)
    except Exception as e:
        print(f"Error: {e}", file=out)
        sys.exit(1)
