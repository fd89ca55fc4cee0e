"""
Document store for users, missions, templates, responses and settings.

A store keeps one collection of JSON-compatible documents per entity,
keyed by id. Writes are last-write-wins upserts; subscribers are called
with the full collection after every change.

Backends:
    MemoryStore   - in-process only (tests, dry runs)
    JSONFileStore - one JSON file on disk, the local-storage equivalent
    SQLStore      - relational tables, see planit.sql_store
"""

import copy
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .logging_utils import get_logger
from .models import (
    AppSettings,
    FormResponse,
    FormTemplate,
    Person,
    TimesheetRecord,
    normalize_login,
)

COLL_USERS = 'users'
COLL_MISSIONS = 'missions'
COLL_TEMPLATES = 'templates'
COLL_RESPONSES = 'responses'
COLL_SETTINGS = 'settings'

COLLECTIONS = [COLL_USERS, COLL_MISSIONS, COLL_TEMPLATES, COLL_RESPONSES, COLL_SETTINGS]

MODEL_TYPES = {
    COLL_USERS: Person,
    COLL_MISSIONS: TimesheetRecord,
    COLL_TEMPLATES: FormTemplate,
    COLL_RESPONSES: FormResponse,
    COLL_SETTINGS: AppSettings,
}

PROTECTED_ACCOUNT = 'admin'

Document = Dict[str, Any]
Listener = Callable[[List[Document]], None]


class StoreError(Exception):
    """Raised when a store cannot read or write its data."""
    pass


class ProtectedAccountError(StoreError):
    """Raised when deleting the seed administrator account."""
    pass


class Store:
    """
    Base class holding the subscription logic.

    Subclasses implement the five storage primitives: _list, _get, _put,
    _remove and _clear. Backends that can swap a collection in one step
    also override _replace.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._listeners: Dict[str, List[Listener]] = {c: [] for c in COLLECTIONS}

    # -- primitives -------------------------------------------------------

    def _list(self, collection: str) -> List[Document]:
        raise NotImplementedError

    def _get(self, collection: str, doc_id: str) -> Optional[Document]:
        raise NotImplementedError

    def _put(self, collection: str, docs: List[Document]):
        raise NotImplementedError

    def _remove(self, collection: str, doc_id: str) -> bool:
        raise NotImplementedError

    def _clear(self, collection: str):
        raise NotImplementedError

    def _replace(self, collection: str, docs: List[Document]):
        self._clear(collection)
        if docs:
            self._put(collection, docs)

    def _commit(self):
        """Persist pending changes; no-op for backends that write through."""

    # -- public interface -------------------------------------------------

    def list_all(self, collection: str) -> List[Document]:
        _check_collection(collection)
        with self._lock:
            return copy.deepcopy(self._list(collection))

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        _check_collection(collection)
        with self._lock:
            return copy.deepcopy(self._get(collection, doc_id))

    def upsert(self, collection: str, doc_id: str, document: Document):
        """Insert or overwrite one document; the id argument wins."""
        self.upsert_batch(collection, [dict(document, id=doc_id)])

    def upsert_batch(self, collection: str, documents: Iterable[Document]):
        _check_collection(collection)
        docs = [copy.deepcopy(d) for d in documents]
        for doc in docs:
            if not doc.get('id'):
                raise StoreError(f"Document without id in {collection}")
        if not docs:
            return
        with self._lock:
            self._put(collection, docs)
            self._commit()
        get_logger().debug(f"Upserted {len(docs)} document(s) into {collection}")
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> bool:
        _check_collection(collection)
        with self._lock:
            removed = self._remove(collection, doc_id)
            if removed:
                self._commit()
        if removed:
            self._notify(collection)
        return removed

    def replace_all(self, collection: str, documents: Iterable[Document]):
        """Replace the whole collection (roster imports replace, not merge)."""
        _check_collection(collection)
        docs = [copy.deepcopy(d) for d in documents]
        with self._lock:
            self._replace(collection, docs)
            self._commit()
        self._notify(collection)

    def subscribe(self, collection: str, callback: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        The callback is called once immediately with the current contents,
        then after every change to the collection.

        Returns:
            Function that removes the listener
        """
        _check_collection(collection)
        with self._lock:
            self._listeners[collection].append(callback)
        callback(self.list_all(collection))

        def unsubscribe():
            with self._lock:
                if callback in self._listeners[collection]:
                    self._listeners[collection].remove(callback)

        return unsubscribe

    def _notify(self, collection: str):
        with self._lock:
            listeners = list(self._listeners[collection])
        if not listeners:
            return
        snapshot = self.list_all(collection)
        for listener in listeners:
            try:
                listener(copy.deepcopy(snapshot))
            except Exception:
                get_logger().exception(f"Listener on {collection} failed")

    def close(self):
        """Release backend resources."""


def _check_collection(collection: str):
    if collection not in COLLECTIONS:
        raise StoreError(f"Unknown collection: {collection}")


class MemoryStore(Store):
    """Keeps every collection in process memory."""

    def __init__(self, data: Optional[Dict[str, List[Document]]] = None):
        super().__init__()
        self._data: Dict[str, Dict[str, Document]] = {c: {} for c in COLLECTIONS}
        for collection, docs in (data or {}).items():
            if collection in self._data:
                for doc in docs:
                    self._data[collection][doc['id']] = copy.deepcopy(doc)

    def _list(self, collection):
        return list(self._data[collection].values())

    def _get(self, collection, doc_id):
        return self._data[collection].get(doc_id)

    def _put(self, collection, docs):
        for doc in docs:
            self._data[collection][doc['id']] = doc

    def _remove(self, collection, doc_id):
        return self._data[collection].pop(doc_id, None) is not None

    def _clear(self, collection):
        self._data[collection].clear()

    def _replace(self, collection, docs):
        self._data[collection] = {doc['id']: doc for doc in docs}

    def snapshot(self) -> Dict[str, List[Document]]:
        """Full copy of the data, one list per collection."""
        with self._lock:
            return {c: copy.deepcopy(self._list(c)) for c in COLLECTIONS}


class JSONFileStore(MemoryStore):
    """
    Memory store mirrored to a single JSON file.

    The file holds {"users": [...], "missions": [...], ...} and is
    rewritten atomically after every change.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        data = None
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding='utf-8') or '{}')
            except (OSError, ValueError) as e:
                raise StoreError(f"Cannot read store file {self.path}: {e}") from e
            if not isinstance(data, dict):
                raise StoreError(f"Store file {self.path} does not hold an object")
        super().__init__(data)

    def _commit(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self.snapshot(), f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise StoreError(f"Cannot write store file {self.path}: {e}") from e


# -- typed helpers ---------------------------------------------------------

def list_models(store: Store, collection: str) -> List[Any]:
    """Load a collection as model objects, skipping unreadable documents."""
    model = MODEL_TYPES[collection]
    items = []
    for doc in store.list_all(collection):
        try:
            items.append(model.from_dict(doc))
        except (TypeError, ValueError) as e:
            get_logger().warning(f"Ignoring invalid {collection} document {doc.get('id')}: {e}")
    return items


def load_missions(store: Store) -> List[TimesheetRecord]:
    return list_models(store, COLL_MISSIONS)


def load_people(store: Store) -> List[Person]:
    return list_models(store, COLL_USERS)


def save_missions(store: Store, records: Iterable[TimesheetRecord]) -> int:
    """Upsert records; returns how many were written."""
    docs = [r.to_dict() for r in records]
    store.upsert_batch(COLL_MISSIONS, docs)
    return len(docs)


def replace_roster(store: Store, people: Iterable[Person]) -> int:
    """Replace the whole user collection with the imported roster."""
    docs = [p.to_dict() for p in people]
    store.replace_all(COLL_USERS, docs)
    return len(docs)


def save_person(store: Store, person: Person, old_id: Optional[str] = None):
    """
    Create or update a user.

    When the login changes, the old document is removed and the
    technician's missions are moved to the new login.
    """
    store.upsert(COLL_USERS, person.id, person.to_dict())
    if old_id and normalize_login(old_id) != person.id:
        old = normalize_login(old_id)
        store.delete(COLL_USERS, old)
        moved = [
            dict(doc, technician_id=person.id)
            for doc in store.list_all(COLL_MISSIONS)
            if doc.get('technician_id') == old
        ]
        store.upsert_batch(COLL_MISSIONS, moved)


def delete_person(store: Store, person_id: str) -> bool:
    """
    Delete a user.

    Raises:
        ProtectedAccountError: For the seed administrator account
    """
    if normalize_login(person_id) == PROTECTED_ACCOUNT:
        raise ProtectedAccountError("The administrator account cannot be deleted")
    return store.delete(COLL_USERS, normalize_login(person_id))


def load_settings(store: Store) -> AppSettings:
    doc = store.get(COLL_SETTINGS, AppSettings.id)
    return AppSettings.from_dict(doc) if doc else AppSettings()
