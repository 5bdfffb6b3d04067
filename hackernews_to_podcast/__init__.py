"""Hacker News daily podcast: summarize the front page, script a two-host
dialogue, narrate it and store everything per date."""

__version__ = "0.3.0"
