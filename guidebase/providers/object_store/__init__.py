"""Object store provider implementations.

LocalObjectStore keeps guide bodies as files under a root directory.  A
bucket-backed store would implement IObjectStore and be wired in main.py.
"""

from guidebase.providers.object_store.local_fs_provider import LocalObjectStore

__all__ = ["LocalObjectStore"]
