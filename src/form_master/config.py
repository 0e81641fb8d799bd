"""
Configuration module for Form Master.

Handles environment variables and default settings.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@dataclass
class FormMasterConfig:
    """Configuration settings for Form Master."""

    # Backend settings
    api_base_url: str = "http://localhost:3001"
    request_timeout: float = 30.0

    # Document processing
    poll_interval: float = 2.0  # seconds between status polls
    poll_timeout: float = 300.0  # stop polling after 5 minutes
    max_upload_mb: int = 10

    # Schema conventions
    documents_table: str = "documents"
    profile_table: str = "personal_details"

    # MCP Server settings
    mcp_transport: str = "stdio"  # stdio or sse
    mcp_port: int = 8080

    # Output settings
    log_level: str = "INFO"
    verbose_output: bool = False

    extra_headers: dict[str, str] = field(default_factory=dict)

    @property
    def max_upload_bytes(self) -> int:
        """Upload size limit in bytes."""
        return self.max_upload_mb * 1024 * 1024

    @classmethod
    def from_env(cls) -> "FormMasterConfig":
        """
        Create configuration from environment variables.

        If an environment variable is not set, uses the class field default value.
        """
        _defaults = cls()

        return cls(
            api_base_url=os.getenv("FORM_MASTER_API_URL", _defaults.api_base_url).rstrip("/"),
            request_timeout=float(os.getenv("FORM_MASTER_TIMEOUT", str(_defaults.request_timeout))),
            poll_interval=float(os.getenv("FORM_MASTER_POLL_INTERVAL", str(_defaults.poll_interval))),
            poll_timeout=float(os.getenv("FORM_MASTER_POLL_TIMEOUT", str(_defaults.poll_timeout))),
            max_upload_mb=int(os.getenv("FORM_MASTER_MAX_UPLOAD_MB", str(_defaults.max_upload_mb))),
            documents_table=os.getenv("FORM_MASTER_DOCUMENTS_TABLE", _defaults.documents_table),
            profile_table=os.getenv("FORM_MASTER_PROFILE_TABLE", _defaults.profile_table),
            mcp_transport=os.getenv("MCP_TRANSPORT", _defaults.mcp_transport),
            mcp_port=int(os.getenv("MCP_PORT", str(_defaults.mcp_port))),
            log_level=os.getenv("FORM_MASTER_LOG_LEVEL", _defaults.log_level).upper(),
            verbose_output=os.getenv("FORM_MASTER_VERBOSE_OUTPUT", str(_defaults.verbose_output).lower()).lower() == "true",
        )


config = FormMasterConfig.from_env()


def get_config() -> FormMasterConfig:
    """Get the current configuration."""
    return config
