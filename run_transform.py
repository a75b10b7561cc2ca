"""Convenience script for running a persona transformation locally."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure the src directory is on the Python path so the pagepersona package can be imported
SRC_PATH = Path(__file__).resolve().parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from pagepersona.config import PipelineConfig  # noqa: E402  (import after path setup)
from pagepersona.errors import ContentFetchError  # noqa: E402
from pagepersona.personas import get_all_personas  # noqa: E402
from pagepersona.services.pipeline import create_transformation_pipeline  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rewrite a webpage or text in a persona's voice.")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--url", help="Webpage to fetch and transform")
    source.add_argument("--text", help="Text to transform directly")
    parser.add_argument("--persona", default="eli5", help="Persona id (default: eli5)")
    parser.add_argument("--config", type=Path, help="Optional JSON configuration file")
    parser.add_argument("--list-personas", action="store_true", help="Print the available personas and exit")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run one transformation and print the result as JSON."""

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_personas:
        summaries = [persona.summary().model_dump() for persona in get_all_personas()]
        print(json.dumps(summaries, indent=2))
        return 0

    if not args.url and args.text is None:
        parser.error("one of --url or --text is required")

    try:
        config = PipelineConfig.from_file(args.config) if args.config else PipelineConfig.from_env()
    except (FileNotFoundError, ValueError) as exc:
        logging.error("Could not load configuration: %s", exc)
        return 1

    try:
        pipeline = create_transformation_pipeline(config)
    except RuntimeError as exc:
        logging.error("%s", exc)
        return 1

    try:
        if args.url:
            result = pipeline.transform_webpage(args.url, args.persona)
        else:
            result = pipeline.transform_text(args.text, args.persona)
    except ContentFetchError as exc:
        logging.error("Failed to fetch %s: %s", args.url, exc.user_message)
        return 1

    print(json.dumps(result.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
