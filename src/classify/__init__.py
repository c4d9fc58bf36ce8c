"""
Classification Provider Chain.

Calls external AI classifiers in priority order with fallback, validating
every response and caching successful results by content fingerprint.
"""

__version__ = "0.1.0"
