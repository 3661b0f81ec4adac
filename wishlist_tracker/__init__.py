"""Track product prices at online retailers and send e-mail alerts on drops."""

__version__ = "0.1.0"