"""Reading-progress tracker for manga series hosted on Manganato."""

__version__ = "0.4.0"
