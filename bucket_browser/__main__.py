"""Command-line entry point for the bucket browser."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional, Sequence

from .models import LoadState
from .presenter import BucketBrowserPresenter
from .ui_utils import (
    format_created,
    format_last_modified,
    format_size,
    format_tags,
    load_package_info,
    parse_tag,
)

ACCESS_KEY_ENV = "BUCKET_BROWSER_ACCESS_KEY"
SECRET_KEY_ENV = "BUCKET_BROWSER_SECRET_KEY"


def _build_parser() -> argparse.ArgumentParser:
    info = load_package_info()
    parser = argparse.ArgumentParser(prog="bucket-browser", description=info.summary)
    parser.add_argument("--version", action="version", version=f"%(prog)s {info.version or 'dev'}")
    parser.add_argument("--profile", help="Saved profile to sign in with")
    parser.add_argument("--api-url", help="API base URL (overrides settings)")
    parser.add_argument("--access-key", default=os.environ.get(ACCESS_KEY_ENV, ""))
    parser.add_argument("--secret-key", default=os.environ.get(SECRET_KEY_ENV, ""))
    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip the /auth/login credential check",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("buckets", help="List buckets")

    create = commands.add_parser("create", help="Create a bucket")
    create.add_argument("name")

    listing = commands.add_parser("ls", help="List files in a bucket")
    listing.add_argument("bucket")
    listing.add_argument("--search", default="", help="Filter by name, tag or metadata")

    get = commands.add_parser("get", help="Download files")
    get.add_argument("bucket")
    get.add_argument("names", nargs="+")
    get.add_argument("--dest", help="Destination directory")

    put = commands.add_parser("put", help="Upload files")
    put.add_argument("bucket")
    put.add_argument("paths", nargs="+")
    put.add_argument("--tag", action="append", default=[], help="KEY=VALUE, applied to every file")

    remove = commands.add_parser("rm", help="Delete files")
    remove.add_argument("bucket")
    remove.add_argument("names", nargs="+")
    remove.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _confirm_prompt(names: Sequence[str]) -> bool:
    answer = input(f"Are you sure you want to delete {len(names)} file(s)? [y/N] ")
    return answer.strip().lower() in {"y", "yes"}


def _report(presenter: BucketBrowserPresenter) -> int:
    if presenter.notice:
        print(presenter.notice, file=sys.stderr)
        presenter.clear_notice()
    if presenter.error:
        print(f"error: {presenter.error}", file=sys.stderr)
        return 1
    return 0


async def _open_bucket(presenter: BucketBrowserPresenter, bucket: str) -> bool:
    snapshot = await presenter.select_bucket(bucket)
    return snapshot.state is LoadState.READY


async def _run(args: argparse.Namespace, presenter: BucketBrowserPresenter) -> int:
    verify = not args.no_verify
    if args.profile:
        signed_in = await presenter.sign_in_with_profile(args.profile, verify=verify)
    else:
        signed_in = await presenter.sign_in(
            api_url=args.api_url,
            access_key=args.access_key,
            secret_key=args.secret_key,
            verify=verify,
        )
    if not signed_in:
        return _report(presenter) or 1

    if args.command == "buckets":
        for bucket in await presenter.refresh_buckets():
            print(f"{bucket.name}\t{format_created(bucket.created)}\t{bucket.access or '-'}")
        return _report(presenter)

    if args.command == "create":
        bucket = await presenter.create_bucket(args.name)
        if bucket is not None:
            print(bucket.name)
        return _report(presenter)

    if not await _open_bucket(presenter, args.bucket):
        return _report(presenter) or 1

    if args.command == "ls":
        presenter.set_query(args.search)
        for entry in presenter.visible_files:
            print(
                f"{entry.name}\t{format_size(entry.size)}\t"
                f"{format_last_modified(entry.last_modified)}\t{format_tags(entry.tags)}"
            )
    elif args.command == "get":
        for path in await presenter.download(args.names, args.dest):
            print(path)
    elif args.command == "put":
        try:
            tags = [parse_tag(text) for text in args.tag]
        except ValueError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 2
        presenter.stage_uploads(args.paths, tags)
        await presenter.upload()
    elif args.command == "rm":
        presenter.select_all_visible(False)
        for name in args.names:
            presenter.toggle_selection(name)
        await presenter.delete()
    return _report(presenter)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    confirm = (lambda names: True) if getattr(args, "yes", False) else _confirm_prompt
    presenter = BucketBrowserPresenter(confirm=confirm)
    try:
        return asyncio.run(_run(args, presenter))
    finally:
        presenter.close()


if __name__ == "__main__":
    sys.exit(main())
