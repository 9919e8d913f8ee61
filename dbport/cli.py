"""Command-line tool for database export, import and backup."""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .client import AdminAPIClient
from .exceptions import PortError
from .models.config import PortConfig
from .orchestrator import DatabaseService

logger = logging.getLogger(__name__)


def _write_json(data: Dict[str, Any], output: Optional[str]) -> None:
    if output:
        with open(output, 'w') as f:
            json.dump(data, f, indent=2)
        print(f"Saved to {output}")
    else:
        print(json.dumps(data, indent=2))


def _read_json(path: str) -> Any:
    with open(path) as f:
        return json.load(f)


def _client(args) -> AdminAPIClient:
    return AdminAPIClient(args.url, token=args.token, auth_scheme=args.auth_scheme)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="dbport - versioned database export, import and backup"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def remote(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--url", required=True, help="Admin API root URL")
        sub.add_argument("--token", help="Access token")
        sub.add_argument("--auth-scheme", default="Bearer", help="Authorization scheme")
        return sub

    export_parser = remote("export", "Download an export from a server")
    export_parser.add_argument("--include", action="append", default=[],
                               help="Auxiliary table to include (repeatable)")
    export_parser.add_argument("--filename", help="Fetch a stored backup instead")
    export_parser.add_argument("--output", help="Output file path")

    import_parser = remote("import", "Upload an export file to a server")
    import_parser.add_argument("--file", required=True, help="Export JSON file")

    backup_parser = remote("backup", "Ask a server to write a backup")
    backup_parser.add_argument("--filename", help="Backup filename")

    remote("wipe", "Delete all content on a server")

    inspect_parser = subparsers.add_parser("inspect", help="Describe an export file")
    inspect_parser.add_argument("--input", required=True, help="Export JSON file")
    inspect_parser.add_argument("--schemas-dir", help="Directory containing schema files")

    migrate_parser = subparsers.add_parser("migrate", help="Upgrade an export file to the current version")
    migrate_parser.add_argument("--input", required=True, help="Export JSON file")
    migrate_parser.add_argument("--output", help="Output file path")
    migrate_parser.add_argument("--schemas-dir", help="Directory containing schema files")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    commands = {
        "export": run_export,
        "import": run_import,
        "backup": run_backup,
        "wipe": run_wipe,
        "inspect": run_inspect,
        "migrate": run_migrate,
    }

    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return 1

    try:
        command(args)
    except PortError as e:
        logger.error(f"{e.error_type}: {e.message}")
        if e.context:
            logger.error(e.context)
        return 1
    return 0


def run_export(args):
    """Download an export."""
    data = _client(args).export(include=args.include or None, filename=args.filename)
    _write_json(data, args.output)


def run_import(args):
    """Upload an export file and report problems."""
    result = _client(args).import_file(args.file)

    summary = (result.get("db") or [{}])[0]
    problems = result.get("problems") or []
    print(f"Imported: {summary.get('imported', '?')}")
    print(f"Problems: {len(problems)}")
    for problem in problems:
        print(f"  - [{problem.get('help')}] {problem.get('message')}")


def run_backup(args):
    """Trigger a server-side backup."""
    result = _client(args).backup(filename=args.filename)
    for entry in result.get("db", []):
        print(f"Backup written: {entry.get('filename')}")


def run_wipe(args):
    """Delete all content on the server."""
    _client(args).delete_all()
    print("All content deleted")


def _offline_service(args) -> DatabaseService:
    config = PortConfig.from_env()
    if args.schemas_dir:
        config = PortConfig.from_dict({**config.to_dict(), "schemas_dir": args.schemas_dir})
    return DatabaseService(config)


def run_inspect(args):
    """Describe an export file without importing it."""
    info = _offline_service(args).inspect_document(_read_json(args.input))

    print(f"Version: {info['version']} (current {info['current_version']})")
    print(f"Exported at: {info['exported_at']}")
    print(f"Migration chain: {', '.join(info['chain']) or 'none'}")
    for table, count in info["tables"].items():
        print(f"  {table}: {count}")


def run_migrate(args):
    """Upgrade an export file to the current version's shape."""
    document = _offline_service(args).migrate_document(_read_json(args.input))
    _write_json(document.to_wire(), args.output)


if __name__ == "__main__":
    sys.exit(main())
