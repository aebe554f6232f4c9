"""Monitor IA agent - usage metrics from AI coding tool session logs."""

__version__ = "1.6.2"
