"""Validate XML documents against RelaxNG and Schematron schemas."""

__title__ = "XML Validator"
__version__ = VERSION = "1.0.0"
__author__ = "XML Validator Developers"
