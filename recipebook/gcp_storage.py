from __future__ import annotations

from typing import Any, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore

from .config import Settings
from .storage import StorageAdapter, StorageUnavailable

VALUE_FIELD = "value"

_BACKEND_ERRORS = (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError)


class FirestoreStorageAdapter(StorageAdapter):
    """Key-value storage for the hosted web deployment.

    Each key maps to one Firestore document in ``collection_name`` whose
    ``value`` field holds the stored text.
    """

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        collection_name: str = "recipebook",
        client: Any = None,
    ) -> None:
        self._project = project
        self._collection_name = collection_name

        self._firestore_client = (
            client if client is not None else firestore.AsyncClient(project=project)
        )
        self._collection = self._firestore_client.collection(collection_name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirestoreStorageAdapter":
        """Build a storage instance from the application settings."""

        return cls(project=settings.gcp_project, collection_name=settings.storage_collection)

    async def get(self, key: str) -> Optional[str]:
        doc_ref = self._collection.document(key)
        try:
            snapshot = await doc_ref.get()
        except _BACKEND_ERRORS as exc:
            raise StorageUnavailable(f"Could not read '{key}' from Firestore: {exc}") from exc

        if not snapshot.exists:
            return None

        data = snapshot.to_dict() or {}
        value = data.get(VALUE_FIELD)
        if value is not None and not isinstance(value, str):
            raise StorageUnavailable(
                f"Firestore document '{key}' holds a {type(value).__name__}, not text."
            )
        return value

    async def set(self, key: str, value: str) -> None:
        doc_ref = self._collection.document(key)
        try:
            await doc_ref.set({VALUE_FIELD: value})
        except _BACKEND_ERRORS as exc:
            raise StorageUnavailable(f"Could not write '{key}' to Firestore: {exc}") from exc

    async def remove(self, key: str) -> None:
        # Firestore treats deleting a missing document as success.
        doc_ref = self._collection.document(key)
        try:
            await doc_ref.delete()
        except _BACKEND_ERRORS as exc:
            raise StorageUnavailable(f"Could not remove '{key}' from Firestore: {exc}") from exc


__all__ = ["FirestoreStorageAdapter"]
