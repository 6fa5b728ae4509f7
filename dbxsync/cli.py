"""CLI interface for dbxsync."""

import logging
import posixpath
from pathlib import Path
from typing import Any, Optional

import click

from .api import DropboxClient
from .auth import require_access_token
from .config import config
from .exceptions import DbxAPIError, DbxError, UsageError
from .models import Metadata
from .output import OutputFormatter
from .utils import REMOTE_PREFIX, format_size, normalize_remote_path

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(verbose: bool, debug: bool) -> None:
    """Configure logging for the verbose and debug flags.

    ``--verbose`` shows every sync decision, ``--debug`` additionally
    shows HTTP requests and skipped entries.
    """
    if debug:
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT, datefmt="%H:%M:%S")
        logging.getLogger("dbxsync").setLevel(logging.DEBUG)
        logging.getLogger("httpx").setLevel(logging.DEBUG)
    elif verbose:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt="%H:%M:%S")
        logging.getLogger("dbxsync").setLevel(logging.INFO)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)


def format_printf(fmt: str, entry: Metadata) -> str:
    """Expand a ``--printf`` format for one entry.

    Directives: ``%p`` path, ``%n`` name, ``%s`` size in bytes, ``%S``
    human-readable size, ``%t`` modified, ``%r`` revision, ``%m`` mime type,
    ``%d`` "d" for directories and "-" for files, ``%%`` a literal percent.
    ``\\n`` and ``\\t`` are expanded too.

    Examples:
        >>> format_printf("%d %p\\n", Metadata(path="/a", is_dir=True))
        'd /a\\n'
    """
    directives = {
        "p": lambda: entry.path,
        "n": lambda: entry.name,
        "s": lambda: str(entry.bytes),
        "S": lambda: format_size(entry.bytes),
        "t": lambda: entry.modified or "",
        "r": lambda: entry.rev or "",
        "m": lambda: entry.mime_type or "",
        "d": lambda: "d" if entry.is_dir else "-",
        "%": lambda: "%",
    }
    result = []
    i = 0
    while i < len(fmt):
        char = fmt[i]
        if char in "%\\" and i + 1 < len(fmt):
            code = fmt[i + 1]
            if char == "%" and code in directives:
                result.append(directives[code]())
                i += 2
                continue
            if char == "\\" and code in "nt\\":
                result.append({"n": "\n", "t": "\t", "\\": "\\"}[code])
                i += 2
                continue
        result.append(char)
        i += 1
    return "".join(result)


def _make_client(ctx: Any, out: OutputFormatter) -> DropboxClient:
    access_token = require_access_token(ctx, out)
    escape_paths = False if ctx.obj.get("no_escape") else None
    return DropboxClient(access_token=access_token, escape_paths=escape_paths)


@click.group()
@click.option(
    "--access-token",
    "-t",
    envvar="DBXSYNC_ACCESS_TOKEN",
    help="Access token for the remote store",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option("--verbose", "-v", is_flag=True, help="Log every action taken")
@click.option("--debug", is_flag=True, help="Enable debug logging output")
@click.option(
    "--no-escape",
    is_flag=True,
    help="Do not percent-encode remote paths in request URLs",
)
@click.version_option(package_name="dbxsync")
@click.pass_context
def main(
    ctx: Any,
    access_token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
    debug: bool,
    no_escape: bool,
) -> None:
    """dbxsync - Mirror directories to and from Dropbox."""
    ctx.ensure_object(dict)
    ctx.obj["access_token"] = access_token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["no_escape"] = no_escape
    configure_logging(verbose, debug)


@main.command()
@click.option(
    "--access-token",
    "-t",
    prompt="Enter your access token",
    hide_input=True,
    help="Access token for the remote store",
)
@click.pass_context
def init(ctx: Any, access_token: str) -> None:
    """Initialize dbxsync configuration.

    Stores your access token in ~/.config/dbxsync/config for future use.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        out.info("Validating access token...")
        client = DropboxClient(access_token=access_token)
        try:
            account = client.account_info()
            display_name = account.get("display_name") or account.get("email")
            out.success(f"Access token is valid ({display_name})")
        except DbxAPIError as e:
            out.error(f"Access token validation failed: {e}")
            if not click.confirm("Save access token anyway?", default=False):
                out.warning("Configuration cancelled.")
                ctx.exit(1)
        finally:
            client.close()

        config.save_access_token(access_token)
        out.print_summary(
            "Initialization Complete",
            [
                ("Status", "Configuration saved successfully"),
                ("Config file", str(config.get_config_path())),
            ],
        )
    except DbxError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)


@main.command()
@click.argument("path", type=str, default="/")
@click.option("--long", "-l", "long_format", is_flag=True, help="Show details")
@click.option("--printf", "printf_format", help="Format each entry (see --help)")
@click.pass_context
def ls(
    ctx: Any, path: str, long_format: bool, printf_format: Optional[str]
) -> None:
    """List a remote directory.

    PATH may carry the dropbox: prefix. --printf directives: %p path,
    %n name, %s size, %S human size, %t modified, %r revision,
    %m mime type, %d type (d or -), %% percent.
    """
    out: OutputFormatter = ctx.obj["out"]
    client = _make_client(ctx, out)
    try:
        with client:
            entries = client.list(normalize_remote_path(path))
    except DbxError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    entries.sort(key=lambda m: m.name)
    if out.json_output:
        out.output_json([vars(entry) for entry in entries])
    elif printf_format is not None:
        for entry in entries:
            click.echo(format_printf(printf_format, entry), nl=False)
    elif long_format:
        out.output_table(
            ["Type", "Size", "Modified", "Name"],
            [
                [
                    "dir" if e.is_dir else "file",
                    "" if e.is_dir else format_size(e.bytes),
                    e.modified or "",
                    e.name + ("/" if e.is_dir else ""),
                ]
                for e in entries
            ],
        )
    else:
        for entry in entries:
            out.print(entry.name + ("/" if entry.is_dir else ""))


@main.command()
@click.argument("path", type=str)
@click.pass_context
def mkdir(ctx: Any, path: str) -> None:
    """Create a remote directory."""
    out: OutputFormatter = ctx.obj["out"]
    client = _make_client(ctx, out)
    try:
        with client:
            entry = client.mkdir(normalize_remote_path(path))
        out.success(f"Created {entry.path}")
    except DbxError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("path", type=str)
@click.pass_context
def rm(ctx: Any, path: str) -> None:
    """Delete a remote file or directory (recursively)."""
    out: OutputFormatter = ctx.obj["out"]
    client = _make_client(ctx, out)
    try:
        with client:
            entry = client.delete(normalize_remote_path(path))
        out.success(f"Deleted {entry.path}")
    except DbxError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("remote", type=str)
@click.argument("local", type=click.Path(path_type=Path), required=False)
@click.pass_context
def get(ctx: Any, remote: str, local: Optional[Path]) -> None:
    """Download a remote file.

    LOCAL defaults to the file name in the current directory; if LOCAL
    is an existing directory the file is placed inside it.
    """
    from .sync import SyncOperations

    out: OutputFormatter = ctx.obj["out"]
    remote_path = normalize_remote_path(remote)
    name = posixpath.basename(remote_path)
    if local is None:
        local = Path(name)
    elif local.is_dir():
        local = local / name
    local = local.expanduser().resolve()

    client = _make_client(ctx, out)
    try:
        with client:
            metadata = client.stat(remote_path)
            if metadata.is_dir:
                out.error(f"{remote_path} is a directory; use 'dbxsync sync'")
                ctx.exit(1)
            # Roots point at the file itself, so the relative path is empty
            operations = SyncOperations(client, local_root=local, remote_root=remote_path)
            operations.download_file("", metadata.mtime)
        out.success(f"Downloaded {remote_path} -> {local}")
    except DbxError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("local", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("remote_dir", type=str, default="/")
@click.option("--name", help="Remote file name (defaults to the local name)")
@click.pass_context
def put(ctx: Any, local: Path, remote_dir: str, name: Optional[str]) -> None:
    """Upload a local file into a remote directory, overwriting."""
    out: OutputFormatter = ctx.obj["out"]
    client = _make_client(ctx, out)
    try:
        with client:
            entry = client.upload(local, normalize_remote_path(remote_dir), name)
        out.success(f"Uploaded {local} -> {entry.path}")
    except DbxError as e:
        out.error(str(e))
        ctx.exit(1)


@main.command()
@click.argument("source", type=str)
@click.argument("destination", type=str)
@click.option(
    "--dry-run", "-n", is_flag=True, help="Show what would be synced without syncing"
)
@click.option(
    "--delete",
    is_flag=True,
    help="Delete destination entries that do not exist in the source",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every action taken")
@click.option("--debug", is_flag=True, help="Enable debug logging output")
@click.pass_context
def sync(
    ctx: Any,
    source: str,
    destination: str,
    dry_run: bool,
    delete: bool,
    verbose: bool,
    debug: bool,
) -> None:
    """Mirror SOURCE onto DESTINATION.

    Exactly one of the two paths must start with dropbox:.

    Files are transferred when they are missing, differ in size, or are
    newer on the source side. With --delete, destination entries missing
    from the source are removed afterwards.

    Examples:
        dbxsync sync dropbox:/Public ./public          # download
        dbxsync sync ./photos dropbox:/Photos --delete # upload and prune
        dbxsync sync -n ./docs dropbox:/Docs           # preview only
    """
    from .sync import SyncEngine, SyncOptions, SyncPair

    out: OutputFormatter = ctx.obj["out"]
    if verbose or debug:
        configure_logging(verbose, debug)

    # Reject bad directions before touching credentials or the network
    try:
        SyncPair.resolve(source, destination)
    except UsageError as e:
        out.error(str(e))
        out.info(f"Usage: dbxsync sync SOURCE DESTINATION ({REMOTE_PREFIX} marks remote)")
        ctx.exit(2)

    client = _make_client(ctx, out)
    engine = SyncEngine(client, out)
    try:
        with client:
            stats = engine.sync(
                source, destination, SyncOptions(dry_run=dry_run, delete=delete)
            )
    except KeyboardInterrupt:
        out.warning("Sync cancelled by user")
        ctx.exit(130)
        return
    except DbxError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(stats)
    else:
        out.print_summary(
            "Dry Run Summary" if dry_run else "Sync Summary",
            [
                ("Directories created", stats["mkdirs"]),
                ("Uploaded", stats["uploads"]),
                ("Downloaded", stats["downloads"]),
                ("Deleted", stats["deletes"]),
                ("Unchanged", stats["skips"]),
                ("Rename failures", stats["rename_failures"]),
            ],
        )


if __name__ == "__main__":
    main()
