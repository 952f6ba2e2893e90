"""Domain layer: value objects, enums, and exceptions.

No dependencies on infrastructure. Used by the storage backends, the
selector and the facade.
"""

from filestore.domain.enums import SelectorState, StorageProvider
from filestore.domain.exceptions import FilestoreException, LocatorParseError
from filestore.domain.value_objects import StorageLocator, StoredObject

__all__ = [
    "FilestoreException",
    "LocatorParseError",
    "SelectorState",
    "StorageLocator",
    "StorageProvider",
    "StoredObject",
]
