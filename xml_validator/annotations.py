"""Read validation annotations from processing instructions in XML documents.

Documents declare their schemas with W3C ``xml-model`` processing instructions::

    <?xml-model href="schema.rng" schematypens="http://relaxng.org/ns/structure/1.0"?>

Test documents declare the failures they are expected to produce with
``expected-error`` processing instructions::

    <?expected-error line="3" message="Title is required" node="/article/front"?>
"""

import os
import re
from pathlib import Path

from lxml import etree
from lxml.etree import _Element as Element  # noqa
from lxml.etree import _ElementTree as ElementTree  # noqa
from lxml.etree import _ProcessingInstruction as ProcessingInstruction  # noqa

from .exceptions import ProcessingInstructionError
from .failures import Failure
from .helpers.logger import LOG
from .validators.base import XmlValidator, as_element_tree
from .validators.factory import ValidatorCache, combine, create_validator

XML_MODEL_PI = "xml-model"
EXPECTED_ERROR_PI = "expected-error"

_PSEUDO_ATTRIBUTE = re.compile(r'([a-z]+)="([^"]*?)"')


def load_document(path: str | os.PathLike[str]) -> ElementTree:
    """
    Parse an XML file keeping its processing instructions and line numbers.

    :param path: The XML file.
    :return: XML element tree.
    """
    return etree.parse(os.fspath(path))


def parse_processing_instruction(instruction: ProcessingInstruction) -> dict[str, str]:
    """
    Parse the pseudo-attributes of a processing instruction.

    :param instruction: The processing instruction.
    :return: Pseudo-attribute values by name. A repeated name keeps the last value.
    :raises ProcessingInstructionError: If the instruction has no pseudo-attributes.
    """
    matches = _PSEUDO_ATTRIBUTE.findall(instruction.text or "")
    if not matches:
        raise ProcessingInstructionError(
            f"Failed to parse processing instruction '{instruction.target}' on line {instruction.sourceline}"
        )
    return dict(matches)


def _top_level_instructions(document: ElementTree | Element, target: str) -> list[ProcessingInstruction]:
    tree = as_element_tree(document)
    return list(tree.xpath(f'/processing-instruction("{target}")'))


def find_validator(
    document: ElementTree | Element, base_dir: str | os.PathLike[str], cache: ValidatorCache | None = None
) -> XmlValidator:
    """
    Create the validator for the schemas a document declares with xml-model processing instructions.

    :param document: XML element or element tree.
    :param base_dir: Directory the schema references are relative to.
    :param cache: Validator cache, by default validators are always compiled.
    :return: The validator, a composite validator if several schemas are declared.
    :raises ProcessingInstructionError: If an instruction is malformed or a schema can't be read.
    """
    validators = []
    for instruction in _top_level_instructions(document, XML_MODEL_PI):
        parsed = parse_processing_instruction(instruction)
        if "href" not in parsed or "schematypens" not in parsed:
            raise ProcessingInstructionError(
                f"Missing href or schematypens in xml-model on line {instruction.sourceline}"
            )
        schema = Path(base_dir) / parsed["href"]
        if not schema.is_file() or not os.access(schema, os.R_OK):
            raise ProcessingInstructionError(f"Failed to read schema {schema}")
        if cache is not None:
            validators.append(cache.get_validator(schema, parsed["schematypens"]))
        else:
            validators.append(create_validator(schema, parsed["schematypens"]))

    if not validators:
        raise ProcessingInstructionError("No xml-model processing instruction found")
    LOG.debug("Found %d schema(s) in document", len(validators))
    return combine(validators)


def find_expected_failures(document: ElementTree | Element) -> list[Failure]:
    """
    Read the failures a document is expected to produce from expected-error processing instructions.

    :param document: XML element or element tree.
    :return: The expected failures in document order.
    :raises ProcessingInstructionError: If an instruction is malformed or its node can't be found.
    """
    tree = as_element_tree(document)
    failures = []
    for instruction in _top_level_instructions(tree, EXPECTED_ERROR_PI):
        parsed = parse_processing_instruction(instruction)

        node = None
        if "node" in parsed:
            try:
                nodes = tree.xpath(parsed["node"])
            except etree.XPathError as e:
                raise ProcessingInstructionError(f"Invalid node XPath '{parsed['node']}'") from e
            if not isinstance(nodes, list) or not nodes or not isinstance(nodes[0], Element):
                raise ProcessingInstructionError(f"Failed to match {parsed['node']}")
            node = nodes[0]

        line = parsed.get("line", "")
        failures.append(Failure(parsed.get("message", ""), int(line) if line.isdigit() else 0, node))
    return failures
