"""
n8n credential injector.

Batch job that moves pending OAuth credentials from the application's
credential store into n8n and records the outcome on each row.
"""

__version__ = "0.1.0"
