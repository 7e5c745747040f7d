"""Daily news digest and investment-term batch jobs."""

__version__ = "0.1.0"
