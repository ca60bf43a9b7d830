"""Common contract for XML validators."""

import os
from abc import ABC, abstractmethod
from pathlib import Path

from lxml import etree
from lxml.etree import _Element as Element  # noqa
from lxml.etree import _ElementTree as ElementTree  # noqa

from ..exceptions import SchemaLoadError
from ..failures import Failure, ValidationFailed
from ..helpers.logger import LOG

# A schema file path or an already parsed schema document.
SchemaSource = str | os.PathLike[str] | ElementTree | Element

# A parsed document to be validated.
Document = ElementTree | Element


def as_element_tree(document: Document) -> ElementTree:
    """
    Return the element tree of a parsed document.

    :param document: XML element or element tree.
    :return: The element tree the document belongs to.
    """
    if isinstance(document, ElementTree):
        return document
    if isinstance(document, Element):
        return document.getroottree()
    raise TypeError(f"Expected a parsed XML document, got {type(document).__name__}")


def schema_name(source: SchemaSource) -> str:
    """
    Return a name for the schema to be used in messages.

    :param source: Schema file or parsed schema.
    :return: The schema file path or the document URL of a parsed schema.
    """
    if isinstance(source, (ElementTree, Element)):
        url = as_element_tree(source).docinfo.URL
        return url if url else "<in-memory schema>"
    return os.fspath(source)


def parse_schema(source: SchemaSource) -> ElementTree:
    """
    Parse a schema document. Raise SchemaLoadError on failure.

    :param source: Schema file or parsed schema.
    :return: The schema element tree.
    """
    if isinstance(source, (ElementTree, Element)):
        return as_element_tree(source)

    path = Path(source)
    if not path.is_file() or not os.access(path, os.R_OK):
        raise SchemaLoadError(path, "file does not exist or is not readable")
    try:
        return etree.parse(os.fspath(path))
    except (OSError, etree.XMLSyntaxError) as e:
        LOG.exception("Failed to parse schema '%s'", path)
        raise SchemaLoadError(path, str(e)) from e


class XmlValidator(ABC):
    """
    Validate parsed XML documents against a schema fixed at construction.

    Validators are expensive to construct and are meant to be reused. Validating
    never modifies the document.
    """

    def validate(self, document: Document) -> None:
        """
        Validate the document. Raise ValidationFailed with every failure found.

        :param document: XML element or element tree.
        """
        failures = self.failures(document)
        if failures:
            raise ValidationFailed(failures)

    def failures(self, document: Document) -> tuple[Failure, ...]:
        """
        Return the failures found in the document.

        :param document: XML element or element tree.
        :return: The failures in the order they were found, empty if the document is valid.
        """
        failures = tuple(self._collect(as_element_tree(document)))
        LOG.debug("%s found %d failure(s)", type(self).__name__, len(failures))
        return failures

    def is_valid(self, document: Document) -> bool:
        """
        Return True if the document has no failures.

        :param document: XML element or element tree.
        :return: True if the document is valid.
        """
        return not self.failures(document)

    @abstractmethod
    def _collect(self, document: ElementTree) -> list[Failure]:
        """
        Collect the failures of one validation call.

        :param document: XML element tree.
        :return: The failures in the order they were found.
        """
