"""
Blob storage package.

Holds cached avatar bytes on local disk, keyed by content fingerprint.
"""

from avc.storage.blob_store import ContentAddressableFileStore

__all__ = ["ContentAddressableFileStore"]
