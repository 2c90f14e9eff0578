"""CSV processor package for the Company Website Resolver."""

from .reader import CSVReader, CSVValidationError
from .writer import CSVWriter

__all__ = ['CSVReader', 'CSVValidationError', 'CSVWriter']
