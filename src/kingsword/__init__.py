"""King's Sword: full-text search over a library of transcribed sermons."""

__version__ = "0.1.0"
