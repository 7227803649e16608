import copy
import itertools

import pytest

from eduvox import create_app, runtime
from eduvox.config import AppConfig


class FakeIncrement:
    def __init__(self, value):
        self.value = value


class FakeFirestoreModule:
    Increment = FakeIncrement


class FakeSnapshot:
    def __init__(self, doc_id, data, reference):
        self.id = doc_id
        self._data = copy.deepcopy(data) if data is not None else None
        self.reference = reference

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


def _merge_into(target, updates):
    for key, value in updates.items():
        if isinstance(value, FakeIncrement):
            current = target.get(key, 0)
            target[key] = (current if isinstance(current, (int, float)) else 0) + value.value
        elif isinstance(value, dict):
            nested = target.get(key)
            if not isinstance(nested, dict):
                nested = {}
            target[key] = _merge_into(nested, value)
        else:
            target[key] = copy.deepcopy(value)
    return target


class FakeDocRef:
    def __init__(self, store, collection_name, doc_id):
        self._store = store
        self._collection_name = collection_name
        self.id = doc_id

    def _docs(self):
        return self._store.setdefault(self._collection_name, {})

    def get(self):
        return FakeSnapshot(self.id, self._docs().get(self.id), self)

    def set(self, data, merge=False):
        docs = self._docs()
        if merge and isinstance(docs.get(self.id), dict):
            _merge_into(docs[self.id], data)
        else:
            docs[self.id] = _merge_into({}, data)

    def update(self, updates):
        docs = self._docs()
        if self.id not in docs:
            raise KeyError(self.id)
        _merge_into(docs[self.id], updates)

    def delete(self):
        self._docs().pop(self.id, None)


class FakeQuery:
    def __init__(self, store, collection_name, filters=None, limit_count=None):
        self._store = store
        self._collection_name = collection_name
        self._filters = list(filters or [])
        self._limit_count = limit_count

    def where(self, *args, **kwargs):
        if 'filter' in kwargs:
            raise TypeError('filter keyword unsupported')
        field_path, op_string, value = args
        if op_string != '==':
            raise ValueError(f"unsupported operator {op_string}")
        return FakeQuery(self._store, self._collection_name, self._filters + [(field_path, value)], self._limit_count)

    def limit(self, count):
        return FakeQuery(self._store, self._collection_name, self._filters, count)

    def stream(self):
        docs = self._store.get(self._collection_name, {})
        results = []
        for doc_id, data in docs.items():
            if all(data.get(field_path) == value for field_path, value in self._filters):
                results.append(FakeSnapshot(doc_id, data, FakeDocRef(self._store, self._collection_name, doc_id)))
        if self._limit_count is not None:
            results = results[:self._limit_count]
        return iter(results)


class FakeCollection(FakeQuery):
    _auto_ids = itertools.count(1)

    def document(self, doc_id=None):
        if doc_id is None:
            doc_id = f"auto-{next(self._auto_ids)}"
        return FakeDocRef(self._store, self._collection_name, doc_id)


class FakeFirestore:
    def __init__(self, data=None):
        self.data = copy.deepcopy(data or {})

    def collection(self, name):
        return FakeCollection(self.data, name)

    def doc(self, collection_name, doc_id):
        return self.data.get(collection_name, {}).get(doc_id)


class FakeTime:
    def __init__(self, now=1_790_000_000.0):
        self.now = now

    def time(self):
        return self.now


COMPLETE_PROFILE = {
    'full_name': 'Asha Rao',
    'nationality': 'Indian',
    'education_level': 'Bachelor',
    'preferred_countries': ['Germany'],
    'preferred_fields_of_study': ['Data Science'],
    'target_intake': 'Fall',
    'target_year': '2027',
    'budget_min': 10000,
    'budget_max': 30000,
}


@pytest.fixture()
def fake_db():
    return FakeFirestore()


@pytest.fixture()
def app(monkeypatch, fake_db):
    application = create_app(config=AppConfig(environment='test'), init_services=False)
    application.config['TESTING'] = True
    monkeypatch.setattr(runtime, 'db', fake_db)
    monkeypatch.setattr(runtime, 'firestore', FakeFirestoreModule)
    monkeypatch.setattr(runtime, 'gemini_client', None)
    monkeypatch.setattr(runtime, 'verify_firebase_token', lambda _request: {'uid': 'user-1', 'email': 'user@example.com'})
    runtime.ENTITLEMENT_CONTEXTS.clear()
    runtime.GENERATION_STATES.clear()
    yield application
    runtime.ENTITLEMENT_CONTEXTS.clear()
    runtime.GENERATION_STATES.clear()


@pytest.fixture()
def client(app):
    with app.test_client() as test_client:
        yield test_client
