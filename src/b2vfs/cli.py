"""CLI entry point for b2vfs."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import BinaryIO, TextIO

from pydantic import ValidationError

from b2vfs import metrics
from b2vfs.adapter import B2Adapter
from b2vfs.config import B2VfsConfig, load_config
from b2vfs.errors import FilesystemError
from b2vfs.logging_config import configure_logging
from b2vfs.mime import ExtensionMimeTypeDetector, NullMimeTypeDetector
from b2vfs.options import ChecksumOptions, PublicUrlOptions, WriteOptions
from b2vfs.store.client import ObjectStoreClient, ObjectStoreError

logger = logging.getLogger("b2vfs")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="b2vfs",
        description="b2vfs - filesystem operations on a Backblaze B2 bucket",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("b2vfs.yaml"),
        help="Path to YAML configuration file (default: b2vfs.yaml)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("ls", help="List a directory")
    ls.add_argument("path", nargs="?", default="")
    ls.add_argument("-r", "--recursive", action="store_true")

    cat = sub.add_parser("cat", help="Print a file to stdout")
    cat.add_argument("path")

    put = sub.add_parser("put", help="Upload a local file")
    put.add_argument("local", type=Path)
    put.add_argument("path")
    put.add_argument("--mime-type", default=None)

    rm = sub.add_parser("rm", help="Delete a file")
    rm.add_argument("path")

    rmdir = sub.add_parser("rmdir", help="Delete a directory and everything below it")
    rmdir.add_argument("path")

    mkdir = sub.add_parser("mkdir", help="Create a directory")
    mkdir.add_argument("path")

    for name, help_text in (("cp", "Copy a file"), ("mv", "Move a file")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("source")
        cmd.add_argument("destination")

    stat = sub.add_parser("stat", help="Show file metadata as JSON")
    stat.add_argument("path")

    url = sub.add_parser("url", help="Print a public URL")
    url.add_argument("path")
    url.add_argument("--valid-duration", type=int, default=None)

    checksum = sub.add_parser("checksum", help="Print the file checksum")
    checksum.add_argument("path")
    checksum.add_argument("--algorithm", default="sha1")

    return parser.parse_args(argv)


async def build_adapter(config: B2VfsConfig, client: ObjectStoreClient) -> B2Adapter:
    """Create the adapter described by ``config`` on top of ``client``."""
    detector = ExtensionMimeTypeDetector() if config.adapter.mime_detection else NullMimeTypeDetector()
    return await B2Adapter.create(
        client,
        bucket_id=config.adapter.bucket_id or None,
        prefix=config.adapter.prefix,
        detector=detector,
        stream_reads=config.adapter.stream_reads,
    )


async def run_command(
    args: argparse.Namespace,
    adapter: B2Adapter,
    out: TextIO,
    binary_out: BinaryIO | None = None,
) -> None:
    """Execute one parsed command against ``adapter``, writing results to ``out``.

    File content from ``cat`` is written unmodified to ``binary_out``, which
    defaults to the byte buffer underneath ``out``.
    """
    command = args.command
    if command == "ls":
        async for item in adapter.list_contents(args.path, deep=args.recursive):
            out.write(f"{item.path}/\n" if item.is_dir else f"{item.path}\t{item.file_size}\n")
    elif command == "cat":
        sink = binary_out if binary_out is not None else out.buffer
        out.flush()
        stream = await adapter.read_stream(args.path)
        async for chunk in stream:
            sink.write(chunk)
        sink.flush()
    elif command == "put":
        await adapter.write(args.path, args.local.read_bytes(), WriteOptions(mime_type=args.mime_type))
    elif command == "rm":
        await adapter.delete(args.path)
    elif command == "rmdir":
        await adapter.delete_directory(args.path)
    elif command == "mkdir":
        await adapter.create_directory(args.path)
    elif command == "cp":
        await adapter.copy(args.source, args.destination)
    elif command == "mv":
        await adapter.move(args.source, args.destination)
    elif command == "stat":
        attributes = await adapter.file_size(args.path)
        out.write(
            json.dumps(
                {
                    "path": attributes.path,
                    "file_size": attributes.file_size,
                    "last_modified": attributes.last_modified,
                    "mime_type": attributes.mime_type,
                    "extra_metadata": attributes.extra_metadata,
                },
                indent=2,
                default=str,
            )
            + "\n"
        )
    elif command == "url":
        options = PublicUrlOptions(valid_duration=args.valid_duration)
        out.write(await adapter.public_url(args.path, options) + "\n")
    elif command == "checksum":
        out.write(await adapter.checksum(args.path, ChecksumOptions(algorithm=args.algorithm)) + "\n")


async def _run(args: argparse.Namespace, config: B2VfsConfig) -> None:
    from b2vfs.store.b2 import B2ObjectStoreClient

    client = B2ObjectStoreClient(
        config.b2.application_key_id,
        config.b2.application_key,
        realm=config.b2.realm,
    )
    await client.init()
    try:
        adapter = await build_adapter(config, client)
        await run_command(args, adapter, sys.stdout, sys.stdout.buffer)
    finally:
        await client.close()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the b2vfs CLI.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    # Basic stderr logger for config-loading errors
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)

    if args.log_level is not None:
        config.logging.level = args.log_level
    if args.log_format is not None:
        config.logging.format = args.log_format
    configure_logging(level=config.logging.level, fmt=config.logging.format)

    if config.metrics.enabled:
        metrics.init_metrics()

    try:
        asyncio.run(_run(args, config))
    except (FilesystemError, ObjectStoreError) as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except ValidationError as exc:
        logger.error("Invalid options: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
