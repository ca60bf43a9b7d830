"""RelaxNG grammar validation."""

import os
import threading
from pathlib import Path
from typing import Iterable

from lxml import etree
from lxml.etree import _Element as Element  # noqa
from lxml.etree import _ElementTree as ElementTree  # noqa
from lxml.etree import _LogEntry  # noqa

from ..exceptions import SchemaLoadError
from ..failures import Failure
from ..helpers.logger import LOG
from .base import SchemaSource, XmlValidator, parse_schema, schema_name

RELAXNG_COMPACT_SUFFIX = ".rnc"

# Packages converting compact syntax for lxml, their errors mean an invalid schema.
COMPACT_PARSER_PACKAGES = ("rnc2rng", "rply")


def is_compact_parser_error(error: Exception) -> bool:
    """
    Return True if the error was raised by the compact syntax converter.

    :param error: The error raised while compiling a compact schema.
    :return: True if the error reports an invalid compact schema.
    """
    return type(error).__module__.partition(".")[0] in COMPACT_PARSER_PACKAGES


def _from_rnc_string(src: str, base_url: str) -> etree.RelaxNG:
    return etree.RelaxNG.from_rnc_string(src, base_url=base_url)


def _join_messages(entries: Iterable[_LogEntry]) -> str:
    return "; ".join(f"line {entry.line}: {entry.message.strip()}" for entry in entries)


class RelaxNgValidator(XmlValidator):
    """Validate documents against a RelaxNG grammar in XML or compact syntax."""

    def __init__(self, schema: SchemaSource) -> None:
        """
        Compile the RelaxNG grammar. Raise SchemaLoadError on failure.

        Grammars in compact syntax are recognised by the ".rnc" file suffix and
        require the rnc2rng package.

        :param schema: RelaxNG schema file or parsed schema.
        """
        self.schema = schema_name(schema)
        self._relaxng = self._compile(schema)
        # The engine resets its error log on every call and keeps it until the next one.
        self._lock = threading.Lock()
        LOG.info("Compiled RelaxNG schema '%s'", self.schema)

    def _compile(self, schema: SchemaSource) -> etree.RelaxNG:
        if not isinstance(schema, (ElementTree, Element)) and Path(schema).suffix.lower() == RELAXNG_COMPACT_SUFFIX:
            return self._compile_compact(Path(schema))

        tree = parse_schema(schema)
        try:
            return etree.RelaxNG(tree)
        except etree.RelaxNGParseError as e:
            LOG.exception("Failed to compile RelaxNG schema '%s'", self.schema)
            raise SchemaLoadError(self.schema, _join_messages(e.error_log) or str(e)) from e

    def _compile_compact(self, path: Path) -> etree.RelaxNG:
        try:
            src = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SchemaLoadError(path, str(e)) from e
        try:
            return _from_rnc_string(src, path.resolve().as_uri())
        except etree.RelaxNGParseError as e:
            LOG.exception("Failed to compile RelaxNG compact schema '%s'", path)
            raise SchemaLoadError(path, _join_messages(e.error_log) or str(e)) from e
        except etree.XMLSyntaxError as e:
            LOG.exception("Failed to parse converted RelaxNG compact schema '%s'", path)
            raise SchemaLoadError(os.fspath(path), str(e)) from e
        except ImportError as e:
            raise SchemaLoadError(path, f"compact syntax requires the rnc2rng package: {e}") from e
        except Exception as e:
            if not is_compact_parser_error(e):
                raise
            LOG.exception("Failed to convert RelaxNG compact schema '%s'", path)
            raise SchemaLoadError(os.fspath(path), str(e)) from e

    def _collect(self, document: ElementTree) -> list[Failure]:
        with self._lock:
            self._relaxng.validate(document)
            entries = list(self._relaxng.error_log)

        failures = []
        for entry in entries:
            if entry.level < etree.ErrorLevels.ERROR:
                LOG.debug("RelaxNG warning on line %d: %s", entry.line, entry.message)
                continue
            # The engine can't reliably attribute grammar errors to a node.
            failures.append(Failure(entry.message.strip(), entry.line))
        return failures
