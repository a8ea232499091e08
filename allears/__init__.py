"""AI All Ears: voice/typed requirements capture and project brief synthesis."""

__version__ = "1.0.0"
