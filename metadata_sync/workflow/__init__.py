"""Multi-file workflows built on metadata sessions."""

from .batch_processor import BatchProcessor
from .tidy_up import TidyUpResult, TidyUpRules

__all__ = ['BatchProcessor', 'TidyUpResult', 'TidyUpRules']
