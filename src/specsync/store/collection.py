"""In-memory :class:`~specsync.interfaces.CollectionStore` implementation."""

from __future__ import annotations

from specsync.models import Collection, Folder, RequestEntity


class InMemoryCollectionStore:
    """Keeps one :class:`Collection` per source in a dict.

    Folder paths are tuples of folder indices from the collection root.
    Unknown sources raise :class:`KeyError`; bad indices raise
    :class:`IndexError`.
    """

    def __init__(self) -> None:
        self._collections: dict[str, Collection] = {}

    # -- collection lifecycle ----------------------------------------------

    def create_collection(self, source_id: str, name: str) -> Collection:
        """Bind a new empty collection to *source_id* (replacing any existing one)."""
        collection = Collection(name=name, source_id=source_id)
        self._collections[source_id] = collection
        return collection

    def delete_collection(self, source_id: str) -> None:
        self._collections.pop(source_id, None)

    # -- CollectionStore ----------------------------------------------------

    def find_by_source(self, source_id: str) -> Collection | None:
        return self._collections.get(source_id)

    def _folder(self, source_id: str, path: tuple[int, ...]) -> Collection | Folder:
        return self._collections[source_id].folder_at(path)

    def add_entity(self, source_id: str, path: tuple[int, ...], entity: RequestEntity) -> None:
        self._folder(source_id, path).requests.append(entity)

    def update_entity(
        self, source_id: str, path: tuple[int, ...], index: int, entity: RequestEntity,
    ) -> None:
        requests = self._folder(source_id, path).requests
        if not 0 <= index < len(requests):
            raise IndexError(f"No request at index {index} under {path!r}")
        requests[index] = entity

    def create_folder(self, source_id: str, path: tuple[int, ...], name: str) -> int:
        folders = self._folder(source_id, path).folders
        folders.append(Folder(name=name))
        return len(folders) - 1

    def remove_entity(self, source_id: str, path: tuple[int, ...], index: int) -> None:
        requests = self._folder(source_id, path).requests
        if not 0 <= index < len(requests):
            raise IndexError(f"No request at index {index} under {path!r}")
        del requests[index]
