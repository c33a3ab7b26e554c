"""
oapi-typegen - Generates Python data models from OpenAPI documents.

Reads an OpenAPI 3 document (YAML or JSON), applies the configured filters,
resolves every schema into a named type and writes one module of pydantic
models backed by ``oapi_typegen.runtime``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from ..shared.errors import SchemaError
from ..shared.naming import to_snake_case
from ..shared.schema_loader import load_document
from .configuration import Configuration, load_configuration
from .document import prepare_document
from .generator import generate
from .merge import merge_documents
from .render import RenderContext

logger = logging.getLogger(__name__)


def default_configuration(spec: Path) -> Configuration:
    """Configuration used when no ``--config`` is given: package named after the document."""
    return Configuration(package=to_snake_case(spec.stem) or "models")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oapi-typegen", description=__doc__,
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("spec", type=Path, help="Path to the OpenAPI document (JSON or YAML)")
    parser.add_argument("--config", type=Path, help="Path to the YAML generator configuration")
    parser.add_argument("--output", type=Path, help="Output module path (overrides output in the configuration)")
    parser.add_argument("--merge", type=Path, action="append", default=[],
                        help="Additional document merged into SPEC before filtering (repeatable)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log resolution details")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_configuration(args.config) if args.config else default_configuration(args.spec)
        config.validate()
        config = config.with_defaults()

        if config.generate.client:
            logger.warning("client generation is not supported, generating models only")
        if not config.generate.models:
            print("Nothing to generate: `generate.models` is off")
            return

        document = load_document(args.spec)
        for other in args.merge:
            document = merge_documents(document, load_document(other))
        document = prepare_document(document, config)

        result = generate(document, config, base_path=args.spec.resolve())
        source = RenderContext().render_models(result.definitions, config.package, config.error_mapping)
    except SchemaError as err:
        raise SystemExit(f"Error: {err}") from err

    output = args.output or config.output_path
    if output is None:
        sys.stdout.write(source)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(source, encoding="utf-8")
    print(f"Generated {len(result.definitions)} types for {len(result.operations)} operations -> {output}")


if __name__ == "__main__":
    main()
