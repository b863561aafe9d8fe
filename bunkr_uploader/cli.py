"""Command line interface for bunkr_uploader."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .cli_progress import (
    BatchProgressDisplay,
    console,
    render_batch_summary,
    render_config_table,
    render_configuration_summary,
)
from .errors import UploaderError
from .models import AlbumTarget, Token
from .orchestrator import BatchResult, BatchUploadOrchestrator, FileCollector
from .protocols import ICredentialStore
from .services import BunkrClient, ConfigStore, KeyringCredentialStore, VideoPreprocessor, resolve_token
from .utils.events import ALL_EVENTS, ProgressChannel
from .utils.sizes import human_size

FAILED_UPLOADS_FILE = "failed_uploads.txt"
COMMANDS = {"save-token", "create-album", "config"}
# Options of the upload form that consume the next argument
VALUE_OPTIONS = {
    "-t", "--token",
    "-a", "--album-id",
    "-n", "--album-name",
    "-b", "--batch-size",
    "--env-file",
    "--log-level",
}


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _credential_store() -> ICredentialStore:
    return KeyringCredentialStore()


def _config_store() -> ConfigStore:
    return ConfigStore()


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level and not os.getenv("LOG_LEVEL")):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    from rich.logging import RichHandler

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _write_failures(result: BatchResult, path: Path) -> None:
    """Append one line per failed file so the user can retry them."""
    if not result.failures:
        return
    with open(path, "a", encoding="utf-8") as f:
        for outcome in result.failures:
            try:
                size = outcome.file_path.stat().st_size
            except OSError:
                size = 0
            kind = outcome.error_kind.value if outcome.error_kind else "unknown"
            f.write(
                f"File: {outcome.file_path}, Kind: {kind}, Error: {outcome.error}, "
                f"Size: {size}, Status: {outcome.status_code}, Retries: {outcome.retries_used}\n"
            )


def _album_target(args: argparse.Namespace, config) -> AlbumTarget:
    """Explicit --album-name/--album-id win over configured defaults."""
    if args.album_name or args.album_id:
        return AlbumTarget.from_options(args.album_id, args.album_name)
    return config.album_target


def _collect(paths: Sequence[Path], recursive: bool) -> List[Path]:
    try:
        files = FileCollector.collect_files(paths, recursive=recursive)
    except FileNotFoundError as exc:
        raise CLIError(str(exc)) from exc
    if not files:
        raise CLIError("No files to upload.")
    return files


async def _run_upload(args: argparse.Namespace, log_mode: str) -> int:
    store = _config_store()
    config = store.load().merge(
        default_batch_size=args.batch_size,
        preprocess_videos=False if args.no_preprocess else None,
        create_missing_album=True if args.create_album else None,
    )
    if config.default_batch_size < 1:
        raise CLIError("--batch-size must be >= 1")

    files = _collect(args.paths, args.recursive)
    album = _album_target(args, config)
    total_bytes = sum(f.stat().st_size for f in files)

    render_configuration_summary(
        {
            "Files": len(files),
            "Total Size": human_size(total_bytes),
            "Album": str(album),
            "Batch Size": config.default_batch_size,
            "Preprocess Videos": "yes" if config.preprocess_videos else "no",
            "Create Missing Album": "yes" if config.create_missing_album else "no",
            "API": config.api_base_url,
            "Logging": log_mode,
        }
    )

    channel = ProgressChannel()
    display = BatchProgressDisplay(len(files), total_bytes)
    channel.on(ALL_EVENTS, display.on_event)

    preprocessor = VideoPreprocessor() if config.preprocess_videos else None
    try:
        async with BunkrClient(config.api_base_url, timeout=config.request_timeout) as client:
            orchestrator = BatchUploadOrchestrator(
                client,
                credential_store=_credential_store(),
                preprocessor=preprocessor,
                progress=channel,
                config=config,
                token=args.token,
            )
            result = await orchestrator.run_batch(files, album, config.default_batch_size)
    finally:
        await channel.aclose()
        display.stop()

    render_batch_summary(result)
    if result.failures:
        _write_failures(result, Path(FAILED_UPLOADS_FILE))
        console.print(f"[red]Failed uploads written to {FAILED_UPLOADS_FILE}[/red]")
    return 0 if result.failure_count == 0 and not result.was_cancelled else 1


async def _run_create_album(args: argparse.Namespace) -> int:
    token = resolve_token(args.token, _credential_store())
    config = _config_store().load()
    async with BunkrClient(config.api_base_url, timeout=config.request_timeout) as client:
        album_id = await client.create_album(
            args.name,
            args.description or "",
            token,
            download=not args.no_download,
            public=not args.private,
        )
    print(f"Album created with ID: {album_id}")
    return 0


def _run_save_token(args: argparse.Namespace) -> int:
    _credential_store().save_token(Token(args.token))
    print("Token saved securely.")
    return 0


def _run_config(args: argparse.Namespace) -> int:
    store = _config_store()
    if args.action == "get":
        if args.key:
            print(store.get_value(args.key))
        else:
            render_config_table(store.items())
        return 0
    store.set_value(args.key, args.value)
    print("Config updated.")
    return 0


def _add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bunkr-up",
        description=(
            "Upload files to Bunkr. Other commands: "
            "save-token, create-album, config (see 'bunkr-up <command> -h')."
        ),
    )
    parser.add_argument("paths", nargs="*", type=Path, help="Files or directories to upload")
    parser.add_argument("-t", "--token", default=None, help="API token (default: saved token)")
    parser.add_argument("-a", "--album-id", default=None, help="Upload into this album id")
    parser.add_argument("-n", "--album-name", default=None, help="Upload into the album with this exact name")
    parser.add_argument("-b", "--batch-size", type=int, default=None, help="Concurrent uploads")
    parser.add_argument(
        "--create-album",
        action="store_true",
        help="Create the --album-name album if it does not exist",
    )
    parser.add_argument(
        "--no-preprocess",
        action="store_true",
        help="Upload videos as-is, without splitting oversize files",
    )
    parser.add_argument("-r", "--recursive", action="store_true", help="Descend into subdirectories")
    _add_logging_arguments(parser)
    parser.add_argument(
        "--version",
        action="version",
        version="bunkr-up (from bunkr_uploader)",
    )
    return parser


def _build_command_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bunkr-up")
    _add_logging_arguments(parser)
    sub = parser.add_subparsers(dest="command", required=True)

    save = sub.add_parser("save-token", help="Save the API token securely")
    save.add_argument("token")

    album = sub.add_parser("create-album", help="Create a new album")
    album.add_argument("name")
    album.add_argument("-d", "--description", default=None)
    album.add_argument("--no-download", action="store_true", help="Disable album downloads")
    album.add_argument("--private", action="store_true", help="Make the album private")
    album.add_argument("-t", "--token", default=None, help="API token (default: saved token)")

    config = sub.add_parser("config", help="Manage configuration")
    actions = config.add_subparsers(dest="action", required=True)
    get = actions.add_parser("get", help="Get configuration value(s)")
    get.add_argument("key", nargs="?", default=None, help="Specific key; all keys if omitted")
    set_ = actions.add_parser("set", help="Set configuration value")
    set_.add_argument("key")
    set_.add_argument("value")
    return parser


def _first_positional(argv: Sequence[str]) -> Optional[str]:
    skip_value = False
    for arg in argv:
        if skip_value:
            skip_value = False
            continue
        if arg in VALUE_OPTIONS:
            skip_value = True
            continue
        if not arg.startswith("-"):
            return arg
    return None


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """Subcommands and the default upload form use separate parsers."""
    if _first_positional(argv) in COMMANDS:
        return _build_command_parser().parse_args(argv)
    args = _build_parser().parse_args(argv)
    args.command = None
    return args


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    args = _parse_args(argv)

    if args.env_file is not None:
        try:
            _load_env_file(Path(args.env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    log_mode = _setup_logging(debug=args.debug, silent=args.silent, log_level=args.log_level)

    try:
        if args.command == "save-token":
            return _run_save_token(args)
        if args.command == "config":
            return _run_config(args)
        if args.command == "create-album":
            return asyncio.run(_run_create_album(args))

        if not args.paths:
            _build_parser().print_help()
            return 0
        return asyncio.run(_run_upload(args, log_mode))
    except (CLIError, UploaderError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
