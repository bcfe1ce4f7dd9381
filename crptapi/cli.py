"""Command line entry point.

    crptapi submit doc1.json doc2.json --signature-file sig.txt --requests 5 --window 1

Every document goes through one shared limiter; --workers threads submit
concurrently. Exit status is 0 when all documents were accepted, 1 when any
failed, and 2 on usage or configuration errors.
"""

import argparse
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from crptapi.core.config import settings
from crptapi.core.logging import get_logger, setup_logging
from crptapi.exceptions import CrptApiError, InvalidConfigurationError, RemoteRejectedError
from crptapi.models.document import Document, decode_document
from crptapi.ratelimit import FixedWindowRateLimiter
from crptapi.services.submitter import DocumentSubmitter

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crptapi",
        description="Submit documents to the CRPT API under a client-side rate limit",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    submit = subparsers.add_parser("submit", help="Create documents from JSON files")
    submit.add_argument("documents", nargs="+", type=Path, help="Document JSON files")
    signature = submit.add_mutually_exclusive_group(required=True)
    signature.add_argument("--signature", help="Signature header value")
    signature.add_argument("--signature-file", type=Path, help="File holding the signature")
    submit.add_argument(
        "--requests",
        type=int,
        default=settings.rate_limit_requests,
        help="Requests allowed per window (default: %(default)s)",
    )
    submit.add_argument(
        "--window",
        type=float,
        default=settings.rate_limit_window_seconds,
        help="Window length in seconds (default: %(default)s)",
    )
    submit.add_argument("--workers", type=int, default=4, help="Concurrent submissions (default: %(default)s)")
    submit.add_argument("--url", default=settings.api_url, help="Document creation endpoint")
    submit.add_argument(
        "--log-level",
        type=str.upper,
        default=settings.log_level.upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: %(default)s)",
    )
    return parser


def _load_documents(parser: argparse.ArgumentParser, paths: Sequence[Path]) -> List[Document]:
    documents = []
    for path in paths:
        try:
            documents.append(decode_document(path.read_bytes()))
        except OSError as e:
            parser.error(f"cannot read {path}: {e.strerror}")
        except CrptApiError as e:
            parser.error(f"{path}: {e.message}")
    return documents


def _read_signature(parser: argparse.ArgumentParser, args: argparse.Namespace) -> str:
    if args.signature is not None:
        return args.signature
    try:
        return args.signature_file.read_text(encoding="utf-8").strip()
    except OSError as e:
        parser.error(f"cannot read {args.signature_file}: {e.strerror}")


def _submit_one(submitter: DocumentSubmitter, path: Path, document: Document, signature: str) -> Tuple[Path, Optional[str]]:
    try:
        submitter.submit(document, signature)
    except RemoteRejectedError as e:
        return path, f"rejected (HTTP {e.status_code}): {e.body}"
    except CrptApiError as e:
        return path, f"{e.error_kind}: {e.message}"
    return path, None


def run_submit(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    if args.workers < 1:
        parser.error("--workers must be at least 1")
    signature = _read_signature(parser, args)
    documents = _load_documents(parser, args.documents)

    try:
        limiter = FixedWindowRateLimiter(args.requests, args.window)
    except InvalidConfigurationError as e:
        print(f"crptapi: {e.message}", file=sys.stderr)
        return 2
    try:
        submitter = DocumentSubmitter(limiter, api_url=args.url)
    except InvalidConfigurationError as e:
        limiter.close()
        print(f"crptapi: {e.message}", file=sys.stderr)
        return 2

    failures = 0
    with limiter, submitter:
        with ThreadPoolExecutor(max_workers=args.workers) as pool:
            futures = [
                pool.submit(_submit_one, submitter, path, document, signature)
                for path, document in zip(args.documents, documents)
            ]
            for future in futures:
                path, error = future.result()
                if error is None:
                    print(f"{path}: ok")
                else:
                    failures += 1
                    print(f"{path}: {error}")

    logger.info(f"Submitted {len(documents) - failures}/{len(documents)} document(s)")
    return 1 if failures else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(log_level=args.log_level)

    if args.command == "submit":
        return run_submit(parser, args)
    parser.error(f"unknown command {args.command}")


if __name__ == "__main__":
    sys.exit(main())
