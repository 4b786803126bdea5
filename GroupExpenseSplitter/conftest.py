"""
Shared pytest fixtures.

fake_db replaces the Firestore client with an in-memory stand-in that
supports the subset of the API the persistence modules use:
collection() / document() chains, set, get, update, delete, stream and
write batches.
"""

import copy

import pytest

import expenses
import firebase_store
import groups
import members


class FakeDocumentSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeDocumentReference:
    def __init__(self, store, path):
        self._store = store
        self._path = path

    @property
    def id(self):
        return self._path[-1]

    def collection(self, name):
        return FakeCollectionReference(self._store, self._path + (name,))

    def set(self, data):
        self._store[self._path] = copy.deepcopy(data)

    def get(self):
        return FakeDocumentSnapshot(self.id, self._store.get(self._path))

    def update(self, fields):
        if self._path not in self._store:
            raise KeyError(f"No document to update: {'/'.join(self._path)}")
        self._store[self._path].update(copy.deepcopy(fields))

    def delete(self):
        self._store.pop(self._path, None)


class FakeCollectionReference:
    def __init__(self, store, path):
        self._store = store
        self._path = path

    def document(self, doc_id):
        return FakeDocumentReference(self._store, self._path + (doc_id,))

    def stream(self):
        depth = len(self._path) + 1
        return [
            FakeDocumentSnapshot(path[-1], data)
            for path, data in sorted(self._store.items())
            if len(path) == depth and path[:-1] == self._path
        ]


class FakeWriteBatch:
    """Queues writes and applies them only on commit()."""

    def __init__(self, db):
        self._db = db
        self._writes = []

    def set(self, ref, data):
        self._writes.append((ref.set, data))

    def update(self, ref, fields):
        self._writes.append((ref.update, fields))

    def delete(self, ref):
        self._writes.append((lambda _: ref.delete(), None))

    def commit(self):
        if self._db.fail_commits:
            raise RuntimeError("commit failed")
        for write, data in self._writes:
            write(data)
        self._writes = []


class FakeFirestore:
    def __init__(self):
        self.store = {}
        self.fail_commits = False

    def collection(self, name):
        return FakeCollectionReference(self.store, (name,))

    def batch(self):
        return FakeWriteBatch(self)


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeFirestore()
    for module in (groups, members, expenses, firebase_store):
        monkeypatch.setattr(module, "get_db", lambda: db)
    return db


@pytest.fixture
def no_db(monkeypatch):
    for module in (groups, members, expenses, firebase_store):
        monkeypatch.setattr(module, "get_db", lambda: None)
