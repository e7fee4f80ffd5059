"""CLI for the photo album pipeline.

Usage:
    python -m photo_rag.ingest.cli upload DIR [--batch-size N] [--skip-existing]
    python -m photo_rag.ingest.cli search QUERY [--limit N] [--location PLACE] [--radius-km R]
    python -m photo_rag.ingest.cli search --all [--limit N]
    python -m photo_rag.ingest.cli list [--limit N]
    python -m photo_rag.ingest.cli create-collection
    python -m photo_rag.ingest.cli delete-collection
"""

from __future__ import annotations

import argparse
import signal
import sys

from loguru import logger

from photo_rag.models import SearchResult, UploadReport


def _print_report(report: UploadReport) -> None:
    print("\nUpload completed!")
    print(f"  Successfully uploaded: {report.success} images")
    print(f"  Skipped:               {report.skipped} images")
    print(f"  Failed:                {report.failed} images")
    if report.errors:
        print("\nErrors:")
        for error in report.errors:
            print(f"  - {error}")


def _print_results(results: list[SearchResult]) -> None:
    for i, result in enumerate(results, start=1):
        line = f"{i}. {result.title}{result.extension} ({result.url})"
        if result.score is not None:
            line += f"  [similarity {result.score * 100:.1f}%]"
        print(line)


def _upload(ctx, args: argparse.Namespace) -> None:
    from photo_rag.ingest.upload import upload_directory

    batch_size = args.batch_size if args.batch_size is not None else ctx.settings.UPLOAD_BATCH_SIZE
    report = upload_directory(
        ctx.pipeline,
        ctx.collections,
        args.directory,
        batch_size=batch_size,
        skip_existing=args.skip_existing,
    )
    _print_report(report)


def _search(ctx, args: argparse.Namespace) -> None:
    if args.all:
        _list(ctx, args)
        return
    if not args.query:
        print("Please provide a search query (or use --all).", file=sys.stderr)
        sys.exit(1)

    results = ctx.queries.search(
        args.query,
        limit=args.limit or 10,
        location=args.location,
        radius_km=args.radius_km,
    )
    print(f'Found {len(results)} results for "{args.query}":')
    _print_results(results)


def _list(ctx, args: argparse.Namespace) -> None:
    results = ctx.queries.list_all(args.limit or 50)
    print(f"Found {len(results)} images in collection '{ctx.settings.COLLECTION_NAME}':")
    _print_results(results)


def _create_collection(ctx, args: argparse.Namespace) -> None:
    ctx.collections.ensure_collection_exists()
    print(f"Collection '{ctx.settings.COLLECTION_NAME}' is ready.")


def _delete_collection(ctx, args: argparse.Namespace) -> None:
    if ctx.collections.delete_collection():
        print(f"Collection '{ctx.settings.COLLECTION_NAME}' deleted.")
    else:
        print(f"Collection '{ctx.settings.COLLECTION_NAME}' does not exist.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photo-rag",
        description="Upload photos to a multimodal Qdrant collection and search them",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    upload = sub.add_parser("upload", help="Upload images from a directory")
    upload.add_argument("directory", help="Directory containing image files")
    upload.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Number of images to upload in each batch (default: UPLOAD_BATCH_SIZE or 10)",
    )
    upload.add_argument(
        "--skip-existing",
        action="store_true",
        help="Skip images whose path already exists in the collection",
    )
    upload.set_defaults(func=_upload)

    search = sub.add_parser("search", help="Search images with a text query")
    search.add_argument("query", nargs="?", default=None, help="Natural language query")
    search.add_argument("--all", action="store_true", help="List stored images instead of searching")
    search.add_argument("--limit", type=int, default=None, help="Maximum number of results")
    search.add_argument("--location", default=None, help="Only photos near this place")
    search.add_argument(
        "--radius-km",
        type=float,
        default=None,
        help="Radius around --location in kilometers",
    )
    search.set_defaults(func=_search)

    listing = sub.add_parser("list", help="List images in the collection")
    listing.add_argument("--limit", type=int, default=None, help="Maximum number of images (default: 50)")
    listing.set_defaults(func=_list)

    create = sub.add_parser("create-collection", help="Create the photo collection")
    create.set_defaults(func=_create_collection)

    delete = sub.add_parser("delete-collection", help="Delete the photo collection")
    delete.set_defaults(func=_delete_collection)

    return parser


def _install_shutdown_handlers() -> None:
    """Turn SIGINT/SIGTERM into SystemExit so the connection is closed on the way out."""

    def _handler(signum, frame):
        logger.warning("Received signal {}, shutting down.", signum)
        raise SystemExit(0)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    from photo_rag.config import settings
    from photo_rag.context import AppContext

    _install_shutdown_handlers()
    ctx = None
    try:
        ctx = AppContext.from_settings(settings)
        args.func(ctx, args)
    except Exception as exc:
        logger.error("Command '{}' failed: {}", args.command, exc)
        sys.exit(1)
    finally:
        if ctx is not None:
            ctx.close()


if __name__ == "__main__":
    main()
