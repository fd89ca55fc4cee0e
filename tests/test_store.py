"""
Tests for the document store and its typed helpers.
"""

import json
from datetime import date

import pytest

from planit.models import Person, Role, Status, TimesheetRecord
from planit.store import (
    COLL_MISSIONS,
    COLL_USERS,
    JSONFileStore,
    MemoryStore,
    ProtectedAccountError,
    StoreError,
    delete_person,
    list_models,
    load_missions,
    load_people,
    load_settings,
    replace_roster,
    save_missions,
    save_person,
)


@pytest.fixture
def store():
    return MemoryStore()


class TestMemoryStore:
    """Tests for the in-memory backend."""

    def test_upsert_and_get(self, store):
        store.upsert(COLL_USERS, 'bob', {'display_name': 'Bob'})
        assert store.get(COLL_USERS, 'bob') == {'id': 'bob', 'display_name': 'Bob'}
        assert store.get(COLL_USERS, 'nobody') is None

    def test_last_write_wins(self, store):
        store.upsert(COLL_USERS, 'bob', {'display_name': 'Bob'})
        store.upsert(COLL_USERS, 'bob', {'display_name': 'Robert'})
        assert store.list_all(COLL_USERS) == [{'id': 'bob', 'display_name': 'Robert'}]

    def test_returned_documents_are_copies(self, store):
        store.upsert(COLL_USERS, 'bob', {'tags': ['a']})
        doc = store.get(COLL_USERS, 'bob')
        doc['tags'].append('b')
        assert store.get(COLL_USERS, 'bob')['tags'] == ['a']

    def test_batch_requires_ids(self, store):
        with pytest.raises(StoreError):
            store.upsert_batch(COLL_USERS, [{'display_name': 'no id'}])

    def test_unknown_collection(self, store):
        with pytest.raises(StoreError, match="Unknown collection"):
            store.list_all('widgets')

    def test_delete(self, store):
        store.upsert(COLL_USERS, 'bob', {})
        assert store.delete(COLL_USERS, 'bob') is True
        assert store.delete(COLL_USERS, 'bob') is False

    def test_replace_all(self, store):
        store.upsert_batch(COLL_USERS, [{'id': 'a'}, {'id': 'b'}])
        store.replace_all(COLL_USERS, [{'id': 'c'}])
        assert [d['id'] for d in store.list_all(COLL_USERS)] == ['c']

    def test_initial_data(self):
        store = MemoryStore({COLL_USERS: [{'id': 'a'}], 'unknown': [{'id': 'x'}]})
        assert store.snapshot()[COLL_USERS] == [{'id': 'a'}]


class TestSubscribe:
    """Tests for change listeners."""

    def test_called_immediately_then_on_change(self, store):
        calls = []
        unsubscribe = store.subscribe(COLL_USERS, calls.append)
        store.upsert(COLL_USERS, 'bob', {})

        assert calls == [[], [{'id': 'bob'}]]

        unsubscribe()
        store.upsert(COLL_USERS, 'alice', {})
        assert len(calls) == 2

    def test_other_collections_do_not_notify(self, store):
        calls = []
        store.subscribe(COLL_USERS, calls.append)
        store.upsert(COLL_MISSIONS, 'm1', {})
        assert calls == [[]]

    def test_failing_listener_does_not_break_writes(self, store):
        def broken(docs):
            if docs:
                raise RuntimeError("boom")

        calls = []
        store.subscribe(COLL_USERS, broken)
        store.subscribe(COLL_USERS, calls.append)
        store.upsert(COLL_USERS, 'bob', {})

        assert store.get(COLL_USERS, 'bob') == {'id': 'bob'}
        assert calls[-1] == [{'id': 'bob'}]


class TestJSONFileStore:
    """Tests for the JSON file backend."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "data.json"
        JSONFileStore(str(path)).upsert(COLL_USERS, 'bob', {'display_name': 'Bob'})

        reopened = JSONFileStore(str(path))

        assert reopened.get(COLL_USERS, 'bob') == {'id': 'bob', 'display_name': 'Bob'}
        assert json.loads(path.read_text(encoding='utf-8'))[COLL_USERS][0]['id'] == 'bob'

    def test_missing_file_is_empty(self, tmp_path):
        store = JSONFileStore(str(tmp_path / "new.json"))
        assert store.list_all(COLL_USERS) == []
        assert not (tmp_path / "new.json").exists()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding='utf-8')
        with pytest.raises(StoreError, match="Cannot read"):
            JSONFileStore(str(path))

    def test_non_object_file(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]", encoding='utf-8')
        with pytest.raises(StoreError):
            JSONFileStore(str(path))


class TestTypedHelpers:
    """Tests for the model-level helpers."""

    def test_save_and_load_missions(self, store):
        record = TimesheetRecord(id='m1', date=date(2024, 3, 1), job_code='AB', work_hours=8,
                                 technician_id='bob', status=Status.SUBMITTED)
        assert save_missions(store, [record]) == 1
        assert load_missions(store) == [record]

    def test_invalid_documents_skipped(self, store):
        store.upsert(COLL_MISSIONS, 'bad', {'date': 'not a date'})
        store.upsert(COLL_MISSIONS, 'good', {'date': '2024-03-01', 'job_code': 'AB'})
        assert [r.id for r in list_models(store, COLL_MISSIONS)] == ['good']

    def test_replace_roster(self, store):
        store.upsert(COLL_USERS, 'old', {'display_name': 'Old'})
        count = replace_roster(store, [Person(id='new', display_name='New')])
        assert count == 1
        assert [p.id for p in load_people(store)] == ['new']

    def test_save_person_with_login_change_moves_missions(self, store):
        save_person(store, Person(id='jdupont', display_name='Jean'))
        save_missions(store, [
            TimesheetRecord(id='m1', date=date(2024, 3, 1), job_code='AB', technician_id='jdupont'),
            TimesheetRecord(id='m2', date=date(2024, 3, 1), job_code='AB', technician_id='other'),
        ])

        save_person(store, Person(id='jean.dupont', display_name='Jean'), old_id='JDupont')

        assert [p.id for p in load_people(store)] == ['jean.dupont']
        owners = {r.id: r.technician_id for r in load_missions(store)}
        assert owners == {'m1': 'jean.dupont', 'm2': 'other'}

    def test_admin_cannot_be_deleted(self, store):
        save_person(store, Person(id='admin', role=Role.ADMIN))
        with pytest.raises(ProtectedAccountError):
            delete_person(store, ' Admin ')
        assert store.get(COLL_USERS, 'admin') is not None

    def test_delete_person(self, store):
        save_person(store, Person(id='bob'))
        assert delete_person(store, 'bob') is True

    def test_load_settings_default(self, store):
        assert load_settings(store).app_name == 'PLANIT-MOUNIER'
