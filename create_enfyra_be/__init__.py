"""create-enfyra-be — scaffold a new Enfyra backend from the remote template."""

__version__ = "0.1.0"
