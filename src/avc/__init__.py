"""
Avatar cache for a user profile service.

Fetches avatar images lazily from a remote profile provider, stores them
once on local disk under their content fingerprint and serves them from
that copy afterwards.
"""

__version__ = "0.1.0"
