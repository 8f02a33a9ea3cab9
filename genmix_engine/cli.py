"""Genmix CLI entrypoints."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from .engine import GenmixEngine
from .errors import GenmixError
from .persistence import SUPPORTED_EXTENSIONS
from .profiles import EncodingOverride
from .runs.events import EventWriter
from .utils import load_dotenv

EVENTS_ENV_VAR = "GENMIX_EVENTS"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="genmix", description="Generate images from a prompt with Gemini")
    sub = parser.add_subparsers(dest="command")

    generate = sub.add_parser("generate", help="Generate and save images")
    generate.add_argument("prompt")
    generate.add_argument("--reference", help="Reference image path, URL or data URI")
    generate.add_argument("--count", type=int, default=1, help="Number of images")
    generate.add_argument("--quality", choices=("1K", "2K", "4K"), help="Output size tier")
    generate.add_argument("--aspect-ratio", dest="aspect_ratio", help="Aspect ratio such as 16:9")
    generate.add_argument("--out", default=".", help="Output directory")
    generate.add_argument("--filename", help="Filename stem (index suffix added for batches)")
    generate.add_argument("--ext", default="jpg", help=f"One of: {', '.join(SUPPORTED_EXTENSIONS)}")
    generate.add_argument("--encode-quality", dest="encode_quality", type=int, help="Explicit encoder quality")
    generate.add_argument(
        "--match-reference",
        dest="match_reference",
        action="store_true",
        help="Save in the reference image's own format",
    )
    generate.add_argument("--events", help="Path to events.jsonl")
    generate.add_argument("--model", help="Gemini image model")
    return parser


async def _generate(args: argparse.Namespace) -> int:
    events_path = args.events or os.getenv(EVENTS_ENV_VAR)
    engine = GenmixEngine(model=args.model, events=EventWriter.open(events_path))
    result = await engine.generate(
        args.prompt,
        reference=args.reference,
        count=args.count,
        quality=args.quality,
        aspect_ratio=args.aspect_ratio,
    )
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    if not result.images:
        if result.text:
            print(result.text)
        print("No images generated.", file=sys.stderr)
        return 1

    extension = args.ext
    if args.match_reference and result.reference_profile is not None:
        extension = result.reference_profile.format
    override = EncodingOverride(quality=args.encode_quality) if args.encode_quality else None
    saved = await engine.save(
        result,
        directory=args.out,
        filename=args.filename,
        extension=extension,
        override=override,
    )
    if result.text:
        print(result.text.strip())
    for artifact in saved:
        print(f"Saved image to {artifact.path}")
    return 0


def _handle_generate(args: argparse.Namespace) -> int:
    if args.count < 1:
        print("--count must be at least 1", file=sys.stderr)
        return 2
    try:
        return asyncio.run(_generate(args))
    except GenmixError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "generate":
        raise SystemExit(_handle_generate(args))
    parser.print_help()
    raise SystemExit(1)


if __name__ == "__main__":
    main()
