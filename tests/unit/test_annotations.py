"""Test reading xml-model and expected-error processing instructions."""

from pathlib import Path

import pytest
from lxml import etree

from xml_validator.annotations import (
    find_expected_failures,
    find_validator,
    load_document,
    parse_processing_instruction,
)
from xml_validator.exceptions import ProcessingInstructionError
from xml_validator.failures import Failure
from xml_validator.validators.composite import CompositeValidator
from xml_validator.validators.factory import ValidatorCache
from xml_validator.validators.relaxng import RelaxNgValidator
from xml_validator.validators.schematron import SchematronValidator

TEST_FILES_DIR = Path(__file__).parent.parent / "test_files"
RELAXNG = 'href="article.rng" schematypens="http://relaxng.org/ns/structure/1.0"'
SCHEMATRON = 'href="article.sch" schematypens="http://purl.oclc.org/dsdl/schematron"'


def parse(xml: str):
    return etree.ElementTree(etree.fromstring(xml.encode("utf-8")))


def write_document(tmp_path: Path, xml: str) -> Path:
    path = tmp_path / "document.xml"
    path.write_text(xml, encoding="utf-8")
    return path


def test_parse_processing_instruction():
    instruction = etree.ProcessingInstruction("xml-model", f'{RELAXNG} title="grammar"')
    assert parse_processing_instruction(instruction) == {
        "href": "article.rng",
        "schematypens": "http://relaxng.org/ns/structure/1.0",
        "title": "grammar",
    }


def test_parse_processing_instruction_empty_value():
    instruction = etree.ProcessingInstruction("expected-error", 'line="" message="Broken"')
    assert parse_processing_instruction(instruction) == {"line": "", "message": "Broken"}


def test_parse_processing_instruction_malformed():
    instruction = etree.ProcessingInstruction("xml-model", "href=article.rng")
    with pytest.raises(ProcessingInstructionError):
        parse_processing_instruction(instruction)


def test_load_document_keeps_instructions():
    document = load_document(TEST_FILES_DIR / "valid" / "article.xml")
    assert document.getroot().tag == "article"
    assert document.getroot().sourceline == 4


def test_find_validator_relaxng():
    document = parse(f"<?xml-model {RELAXNG}?><article/>")
    assert isinstance(find_validator(document, TEST_FILES_DIR / "schemas"), RelaxNgValidator)


def test_find_validator_schematron():
    document = parse(f"<?xml-model {SCHEMATRON}?><article/>")
    assert isinstance(find_validator(document.getroot(), TEST_FILES_DIR / "schemas"), SchematronValidator)


def test_find_validator_several():
    document = parse(f"<?xml-model {RELAXNG}?><?xml-model {SCHEMATRON}?><article/>")

    validator = find_validator(document, TEST_FILES_DIR / "schemas")

    assert isinstance(validator, CompositeValidator)
    assert [type(child) for child in validator.validators] == [RelaxNgValidator, SchematronValidator]


def test_find_validator_cache():
    document = parse(f"<?xml-model {RELAXNG}?><article/>")
    cache = ValidatorCache()

    first = find_validator(document, TEST_FILES_DIR / "schemas", cache)
    second = find_validator(document, TEST_FILES_DIR / "schemas", cache)

    assert first is second


def test_find_validator_missing_schema():
    document = parse('<?xml-model href="missing.rng" schematypens="http://relaxng.org/ns/structure/1.0"?><article/>')
    with pytest.raises(ProcessingInstructionError):
        find_validator(document, TEST_FILES_DIR / "schemas")


def test_find_validator_missing_schematypens():
    document = parse('<?xml-model href="article.rng"?><article/>')
    with pytest.raises(ProcessingInstructionError):
        find_validator(document, TEST_FILES_DIR / "schemas")


def test_find_validator_unknown_schematypens():
    document = parse('<?xml-model href="article.rng" schematypens="http://www.w3.org/2001/XMLSchema"?><article/>')
    with pytest.raises(ProcessingInstructionError):
        find_validator(document, TEST_FILES_DIR / "schemas")


def test_find_validator_no_instruction():
    with pytest.raises(ProcessingInstructionError):
        find_validator(parse("<article/>"), TEST_FILES_DIR / "schemas")


def test_find_validator_ignores_nested_instructions():
    document = parse(f"<article><?xml-model {RELAXNG}?></article>")
    with pytest.raises(ProcessingInstructionError):
        find_validator(document, TEST_FILES_DIR / "schemas")


def test_find_expected_failures(tmp_path):
    path = write_document(
        tmp_path,
        """<?xml version="1.0"?>
<?expected-error line="5" message="Title must not be empty" node="/article/title"?>
<?expected-error message="Something is wrong"?>
<article>
  <title/>
</article>
""",
    )
    document = load_document(path)

    failures = find_expected_failures(document)

    assert failures == [
        Failure("Title must not be empty", 5, document.getroot()[0]),
        Failure("Something is wrong", 0),
    ]


def test_find_expected_failures_line_not_a_number():
    document = parse('<?expected-error line="seven" message="Broken"?><article/>')
    assert find_expected_failures(document) == [Failure("Broken", 0)]


def test_find_expected_failures_none():
    assert find_expected_failures(parse("<article/>")) == []


def test_find_expected_failures_node_not_found():
    document = parse('<?expected-error line="1" message="Broken" node="/article/missing"?><article/>')
    with pytest.raises(ProcessingInstructionError):
        find_expected_failures(document)


def test_find_expected_failures_node_not_an_element():
    document = parse('<?expected-error line="1" message="Broken" node="count(/article)"?><article/>')
    with pytest.raises(ProcessingInstructionError):
        find_expected_failures(document)


def test_find_expected_failures_invalid_xpath():
    document = parse('<?expected-error line="1" message="Broken" node="/article["?><article/>')
    with pytest.raises(ProcessingInstructionError):
        find_expected_failures(document)
