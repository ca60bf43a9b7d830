"""Test failures and the validation error."""

import dataclasses

import pytest
from lxml import etree

from xml_validator.exceptions import ProcessingInstructionError, SchemaLoadError, XmlValidatorException
from xml_validator.failures import Failure, ValidationFailed


def _document():
    return etree.ElementTree(etree.fromstring("<article>\n  <title/>\n  <title/>\n</article>"))


def test_failure_defaults():
    failure = Failure("Title must not be empty")
    assert failure.line == 0
    assert failure.node is None


def test_failure_line_none():
    assert Failure("message", None).line == 0


def test_failure_line_negative():
    with pytest.raises(ValueError):
        Failure("message", -1)


def test_failure_immutable():
    failure = Failure("message", 1)
    with pytest.raises(dataclasses.FrozenInstanceError):
        failure.message = "other"


def test_failure_equality_without_node():
    assert Failure("message", 1) == Failure("message", 1)
    assert Failure("message", 1) != Failure("message", 2)
    assert Failure("message", 1) != Failure("other", 1)
    assert Failure("message", 1) != "message"


def test_failure_equality_node_identity():
    document = _document()
    first, second = document.getroot().findall("title")

    assert Failure("message", 2, first) == Failure("message", 2, document.getroot()[0])
    assert Failure("message", 2, first) != Failure("message", 2, second)
    assert Failure("message", 2, first) != Failure("message", 2)


def test_failure_hash():
    document = _document()
    node = document.getroot()[0]
    failures = {Failure("message", 2, node), Failure("message", 2, node), Failure("message", 2)}
    assert len(failures) == 2


def test_failure_to_dict():
    document = _document()
    node = document.getroot()[1]

    assert Failure("message", 3, node).to_dict() == {"message": "message", "line": 3, "node": "/article/title[2]"}
    assert Failure("message").to_dict() == {"message": "message", "line": 0, "node": None}


def test_failure_repr():
    document = _document()
    assert repr(Failure("message", 2, document.getroot()[0])) == "Failure(message='message', line=2, node='title')"


def test_validation_failed():
    failures = [Failure("first", 2), Failure("second", 1)]
    error = ValidationFailed(failures)

    assert error.get_failures() == tuple(failures)
    assert error.failures == tuple(failures)
    assert len(error) == 2
    assert list(error) == failures
    assert str(error) == "XML validation failed with 2 error(s):\nLine 2: first\nLine 1: second"


def test_validation_failed_copies_failures():
    failures = [Failure("first", 2)]
    error = ValidationFailed(failures)
    failures.append(Failure("second", 3))

    assert len(error) == 1


def test_validation_failed_empty():
    with pytest.raises(ValueError):
        ValidationFailed([])


def test_validation_failed_is_not_a_configuration_error():
    assert not issubclass(ValidationFailed, XmlValidatorException)
    assert issubclass(SchemaLoadError, XmlValidatorException)
    assert issubclass(ProcessingInstructionError, XmlValidatorException)


def test_schema_load_error_message():
    error = SchemaLoadError("schemas/missing.rng", "file does not exist or is not readable")
    assert error.schema == "schemas/missing.rng"
    assert error.message == "Failed to load schema 'schemas/missing.rng': file does not exist or is not readable"
