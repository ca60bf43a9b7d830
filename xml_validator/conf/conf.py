"""Validator configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class ValidatorConfig(BaseSettings):
    """Validator configuration."""

    model_config = {"extra": "allow"}  # Allow creation using the constructor.

    XML_VALIDATOR_CACHE_SCHEMAS: bool = Field(
        default=True, description="Reuse validators compiled from the same schema file."
    )
    XML_VALIDATOR_SCHEMATRON_PHASE: str | None = Field(
        default=None, description="Schematron phase to validate, by default the schema default phase."
    )
    XML_VALIDATOR_VALIDATE_SCHEMATRON_SCHEMA: bool = Field(
        default=True, description="Check Schematron schemas against the ISO Schematron grammar before compiling."
    )


validator_config = ValidatorConfig()
