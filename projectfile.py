from __future__ import annotations

"""
Load, inspect and re-save project documents.

Usage:
python projectfile.py info project.xml
python projectfile.py resave project.xml copy.xml
python projectfile.py --verbose info project.xml --decode-media
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from loader import ProjectLoader, UnresolvedReferenceError, VersionError
from markup import ParseError, SchemaError
from media import MediaError, ThreadedMediaDecoder
from model import ObsoleteBlock, Project
from serializer import SerializationError, serialize

logger = logging.getLogger(__name__)

PROJECT_ERRORS = (ParseError, SchemaError, VersionError, UnresolvedReferenceError, SerializationError, MediaError)


def load_file(path: Path, decode_media: bool = False) -> Project:
    text = path.read_text(encoding="utf-8")
    if not decode_media:
        return ProjectLoader().load(text)
    with ThreadedMediaDecoder() as decoder:
        project = ProjectLoader(media_decoder=decoder).load(text)
        decoder.wait()
    return project


def save_file(project: Project, path: Path) -> None:
    path.write_text(serialize(project), encoding="utf-8")


def describe(project: Project) -> dict[str, Any]:
    scripts = 0
    blocks = 0
    placeholders = 0
    definitions = 0
    for obj in project.scriptables():
        scripts += len(obj.scripts)
        definitions += len(obj.custom_blocks)
        for block in obj.all_blocks():
            blocks += 1
            if isinstance(block, ObsoleteBlock):
                placeholders += 1
    return {
        "name": project.name,
        "sprites": len(project.sprites),
        "scripts": scripts,
        "blocks": blocks,
        "custom_blocks": definitions,
        "placeholders": placeholders,
        "watchers": len(project.stage.watchers),
        "globals": len(project.global_variables.vars),
    }


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and re-save visual programming project documents")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log placeholder substitutions and media failures.")
    commands = parser.add_subparsers(dest="command", required=True)

    info = commands.add_parser("info", help="Print a summary of a project file")
    info.add_argument("input", type=Path, help="Path to the project document")
    info.add_argument("--decode-media", action="store_true", help="Decode costume and sound payloads while loading.")

    resave = commands.add_parser("resave", help="Load a project file and write it back out")
    resave.add_argument("input", type=Path, help="Path to the project document")
    resave.add_argument("output", type=Path, help="Path of the document to write")
    resave.add_argument("--decode-media", action="store_true", help="Decode costume and sound payloads while loading.")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    input_path: Path = args.input

    if not input_path.exists() or not input_path.is_file():
        print(f"Input file not found: '{input_path}'", file=sys.stderr)
        return 1

    try:
        project = load_file(input_path, decode_media=args.decode_media)
        if args.command == "resave":
            save_file(project, args.output)
            logger.info("Wrote %s", args.output)
            return 0
    except PROJECT_ERRORS as exc:
        print(f"{input_path}: {exc}", file=sys.stderr)
        return 1

    for key, value in describe(project).items():
        print(f"{key}: {value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
