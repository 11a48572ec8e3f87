"""
Vocab Practice

Japanese → English vocabulary practice: randomized sessions, answer grading,
progress tracking and word-bank management.
"""

from . import errors
from . import structured
from . import grading
from . import db
from . import mock_data
from . import sessions
from . import csv_import
from . import words
from . import progress
from . import fallback

__version__ = "0.1.0"
__all__ = [
    "errors", "structured", "grading", "db", "mock_data", "sessions",
    "csv_import", "words", "progress", "fallback",
]
