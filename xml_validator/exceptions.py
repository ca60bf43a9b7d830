"""Errors raised by validators that are not validation results."""

from os import PathLike


class XmlValidatorException(Exception):
    """Base class for configuration and schema errors."""

    def __init__(self, message: str) -> None:
        """Initialize exception."""
        self.message = message
        super().__init__(message)


class SchemaLoadError(XmlValidatorException):
    """Exception raised when a schema can't be read, parsed or compiled."""

    def __init__(self, schema: str | PathLike[str], reason: str) -> None:
        """
        Exception raised when a schema can't be read, parsed or compiled.

        :param schema: The schema file or a short description of an in-memory schema.
        :param reason: Why the schema could not be loaded.
        """
        self.schema = str(schema)
        self.reason = reason
        super().__init__(f"Failed to load schema '{self.schema}': {reason}")


class RuleEvaluationError(XmlValidatorException):
    """Exception raised when a compiled rule can't be evaluated against a document."""

    def __init__(self, expression: str, reason: str) -> None:
        """
        Exception raised when a compiled rule can't be evaluated against a document.

        :param expression: The XPath expression that failed.
        :param reason: The engine error message.
        """
        self.expression = expression
        super().__init__(f"Failed to evaluate '{expression}': {reason}")


class ProcessingInstructionError(XmlValidatorException):
    """Exception raised for malformed or unresolvable validation processing instructions."""
