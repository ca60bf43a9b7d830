"""Validation against several schemas in one pass."""

from lxml.etree import _ElementTree as ElementTree  # noqa

from ..failures import Failure, ValidationFailed
from ..helpers.logger import LOG
from .base import XmlValidator


class CompositeValidator(XmlValidator):
    """
    Run several validators against the same document and combine their failures.

    Validators run one after the other in registration order. Their failures are
    concatenated in that order. Errors other than ValidationFailed abort the run.
    """

    def __init__(self, *validators: XmlValidator) -> None:
        """
        Run several validators against the same document and combine their failures.

        :param validators: The validators in the order they are run.
        """
        if not validators:
            raise ValueError("At least one validator is required.")
        for validator in validators:
            if not isinstance(validator, XmlValidator):
                raise TypeError(f"Expected an XmlValidator, got {type(validator).__name__}")
        self.validators: tuple[XmlValidator, ...] = validators

    def _collect(self, document: ElementTree) -> list[Failure]:
        failures: list[Failure] = []
        for validator in self.validators:
            try:
                validator.validate(document)
            except ValidationFailed as e:
                LOG.debug("%s failed with %d failure(s)", type(validator).__name__, len(e))
                failures.extend(e.get_failures())
        return failures
