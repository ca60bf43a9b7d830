"""Create validators from schema files identified by their schema language namespace."""

import os
import threading
from pathlib import Path
from typing import Sequence

from ..conf.conf import ValidatorConfig, validator_config
from ..exceptions import ProcessingInstructionError
from ..helpers.logger import LOG
from .base import XmlValidator
from .composite import CompositeValidator
from .relaxng import RelaxNgValidator
from .schematron import SCHEMATRON_NS, SchematronValidator

RELAXNG_NS = "http://relaxng.org/ns/structure/1.0"


def create_validator(
    schema: str | os.PathLike[str], schematypens: str, config: ValidatorConfig = validator_config
) -> XmlValidator:
    """
    Create a validator for a schema file.

    :param schema: The schema file.
    :param schematypens: The schema language namespace.
    :param config: The validator configuration.
    :returns: The validator.
    :raises ProcessingInstructionError: If the schema language is not supported.
    :raises SchemaLoadError: If the schema can't be loaded.
    """
    if schematypens == RELAXNG_NS:
        return RelaxNgValidator(schema)
    if schematypens == SCHEMATRON_NS:
        return SchematronValidator(
            schema,
            config.XML_VALIDATOR_SCHEMATRON_PHASE,
            validate_schema=config.XML_VALIDATOR_VALIDATE_SCHEMATRON_SCHEMA,
        )
    raise ProcessingInstructionError(f"Unknown schematypens '{schematypens}' for schema '{os.fspath(schema)}'")


def combine(validators: Sequence[XmlValidator]) -> XmlValidator:
    """
    Combine validators into one.

    :param validators: The validators in the order they are run.
    :returns: The only validator, or a composite validator for several.
    """
    if not validators:
        raise ValueError("At least one validator is required.")
    if len(validators) == 1:
        return validators[0]
    return CompositeValidator(*validators)


class ValidatorCache:
    """Reuse validators compiled from the same schema file."""

    def __init__(self, config: ValidatorConfig = validator_config) -> None:
        """
        Reuse validators compiled from the same schema file.

        :param config: The validator configuration.
        """
        self.config = config
        self._validators: dict[tuple[str, str], XmlValidator] = {}
        self._lock = threading.Lock()

    def get_validator(self, schema: str | os.PathLike[str], schematypens: str) -> XmlValidator:
        """
        Return a cached validator or create one.

        :param schema: The schema file.
        :param schematypens: The schema language namespace.
        :returns: The validator.
        """
        if not self.config.XML_VALIDATOR_CACHE_SCHEMAS:
            return create_validator(schema, schematypens, self.config)

        key = (str(Path(schema).resolve()), schematypens)
        with self._lock:
            if key not in self._validators:
                self._validators[key] = create_validator(schema, schematypens, self.config)
            else:
                LOG.debug("Reusing validator for schema '%s'", key[0])
            return self._validators[key]

    def clear(self) -> None:
        """Remove all cached validators."""
        with self._lock:
            self._validators.clear()

    def __len__(self) -> int:
        return len(self._validators)
