"""Validate the annotated documents under test_files against the schemas they declare."""

from pathlib import Path

import pytest

from xml_validator.annotations import find_expected_failures, find_validator, load_document
from xml_validator.failures import ValidationFailed
from xml_validator.validators.factory import ValidatorCache

TEST_FILES_DIR = Path(__file__).parent.parent / "test_files"

CACHE = ValidatorCache()


def _documents(directory: str) -> list[Path]:
    return sorted((TEST_FILES_DIR / directory).rglob("*.xml"))


def _id(path: Path) -> str:
    return str(path.relative_to(TEST_FILES_DIR))


@pytest.mark.parametrize("path", _documents("valid"), ids=_id)
def test_valid_document(path):
    document = load_document(path)
    validator = find_validator(document, path.parent, CACHE)

    validator.validate(document)


@pytest.mark.parametrize("path", _documents("invalid"), ids=_id)
def test_invalid_document(path):
    document = load_document(path)
    validator = find_validator(document, path.parent, CACHE)
    expected = find_expected_failures(document)
    assert expected, f"{path} declares no expected-error processing instruction"

    with pytest.raises(ValidationFailed) as e:
        validator.validate(document)

    assert list(e.value.get_failures()) == expected
