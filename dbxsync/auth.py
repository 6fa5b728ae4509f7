"""Access token resolution for CLI commands."""

from typing import Any

from .config import config
from .output import OutputFormatter


def require_access_token(ctx: Any, out: OutputFormatter) -> str:
    """Return the access token from the command line or config, or exit.

    Args:
        ctx: Click context holding the global ``--access-token`` value
        out: Output formatter for error messages

    Returns:
        Access token
    """
    access_token = ctx.obj.get("access_token") or config.access_token
    if not access_token:
        out.error(
            "Access token not configured. Run 'dbxsync init' or set "
            "DBXSYNC_ACCESS_TOKEN."
        )
        ctx.exit(1)
    return access_token
