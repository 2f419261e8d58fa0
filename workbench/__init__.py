"""Campaign workbench: pathway templates, phases and application progression."""

__version__ = "0.1.0"
