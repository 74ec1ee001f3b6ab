"""Command-line interface for running claims through the validation pipeline.

Usage:
    claimval --help
    claimval validate claim.json --doc receipt_001 --index clauses.json
"""

from claim_validation.cli._app import app

# Register command modules (side-effect imports)
import claim_validation.cli.cmd_scan  # noqa: F401
import claim_validation.cli.cmd_redact  # noqa: F401
import claim_validation.cli.cmd_validate  # noqa: F401
import claim_validation.cli.cmd_audit  # noqa: F401

__all__ = ["app"]
