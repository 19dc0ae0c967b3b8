"""Text utilities."""

from .description_cleaner import clean_description

__all__ = ["clean_description"]
