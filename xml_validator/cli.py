"""Validate XML files against the schemas declared in their xml-model processing instructions."""

import argparse
import sys
from pathlib import Path
from typing import Any, Sequence

import ujson
from lxml import etree

from . import __title__, __version__
from .annotations import find_validator, load_document
from .exceptions import XmlValidatorException
from .failures import ValidationFailed
from .helpers.logger import LOG, log_debug_json
from .validators.factory import ValidatorCache

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_ERROR = 2


def validate_file(path: Path, cache: ValidatorCache) -> list[dict[str, Any]]:
    """
    Validate one XML file.

    :param path: The XML file.
    :param cache: Validator cache shared between files.
    :return: The failures as dictionaries, empty if the file is valid.
    """
    document = load_document(path)
    validator = find_validator(document, path.parent, cache)
    try:
        validator.validate(document)
    except ValidationFailed as e:
        return [failure.to_dict() for failure in e.get_failures()]
    return []


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line interface."""
    parser = argparse.ArgumentParser(prog="xml_validator", description=__title__)
    parser.add_argument("files", nargs="+", type=Path, help="XML files to validate")
    parser.add_argument("--json", action="store_true", help="print the failures as JSON")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    cache = ValidatorCache()
    results: dict[str, list[dict[str, Any]]] = {}
    for path in args.files:
        try:
            results[str(path)] = validate_file(path, cache)
        except (XmlValidatorException, OSError, etree.XMLSyntaxError) as e:
            LOG.error("Failed to validate '%s': %s", path, e)
            return EXIT_ERROR

    log_debug_json(results)
    if args.json:
        print(ujson.dumps(results, indent=2, escape_forward_slashes=False))
    else:
        for file, failures in results.items():
            for failure in failures:
                print(f"{file}:{failure['line']}: {failure['message']}")

    return EXIT_INVALID if any(results.values()) else EXIT_VALID


if __name__ == "__main__":
    sys.exit(main())
