"""sheetcharts: spreadsheet upload -> tabular data -> chart series and analysis."""

__version__ = "0.1.0"
