"""toprun -- scaffold a modern Eleventy web project in seconds."""

__version__ = "0.1.0"
