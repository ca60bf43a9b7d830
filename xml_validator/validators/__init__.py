"""XML validators for RelaxNG and Schematron schemas."""

from .base import XmlValidator
from .composite import CompositeValidator
from .relaxng import RelaxNgValidator
from .schematron import SchematronValidator

__all__ = ["XmlValidator", "CompositeValidator", "RelaxNgValidator", "SchematronValidator"]
