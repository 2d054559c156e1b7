"""Fill in missing Go documentation comments with a language model."""

__version__ = "0.1.0"
