"""Write the Decision Copilot OpenAPI document to disk."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from app.main import create_app

DEFAULT_OUTPUT = Path("docs") / "openapi.json"


def build_schema(app: FastAPI | None = None) -> dict:
    app = app or create_app()
    return get_openapi(title=app.title, version=app.version, description=app.description, routes=app.routes)


def main(argv: list[str] | None = None) -> Path:
    parser = argparse.ArgumentParser(description="Export the decision run API schema as JSON")
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT, help=f"Destination file (default: {DEFAULT_OUTPUT})")
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation width")
    args = parser.parse_args(argv)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    schema = build_schema()
    args.output.write_text(json.dumps(schema, indent=args.indent, sort_keys=True), encoding="utf-8")
    print(f"Wrote {len(schema['paths'])} paths to {args.output}")
    return args.output


if __name__ == "__main__":
    main()
