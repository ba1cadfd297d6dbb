"""brain: answer questions over a personal knowledge base of text files."""

__version__ = "0.1.0"
