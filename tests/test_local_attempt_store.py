import json
from datetime import datetime, timezone

from quiz_client.core.key_value_store import InMemoryKeyValueStore, JsonFileKeyValueStore
from quiz_client.core.models import LocalAttempt, StudentIdentity
from quiz_client.core.services.local_attempt_store import LocalAttemptStore

STORAGE_KEY = "quizteacherfe_local_attempts"
STARTED = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class UnavailableStore:
    def get(self, key):
        raise OSError("disk gone")

    def set(self, key, value):
        raise OSError("disk full")

    def delete(self, key):
        raise OSError("disk gone")


def _attempt(attempt_id="local_1", quiz_id=1, **kwargs):
    return LocalAttempt(
        attempt_id=attempt_id,
        quiz_id=quiz_id,
        student=StudentIdentity(name="An", date_of_birth="2010-04-02", class_name="9A"),
        started_at=STARTED,
        **kwargs,
    )


def test_saved_attempt_survives_a_new_store_instance(tmp_path):
    path = tmp_path / "storage.json"
    LocalAttemptStore(JsonFileKeyValueStore(path), STORAGE_KEY).save_attempt(
        _attempt(answers={11: "B", 12: "A,C"}, server_attempt_id=7)
    )

    restored = LocalAttemptStore(JsonFileKeyValueStore(path), STORAGE_KEY).get_attempt("local_1")

    assert restored == _attempt(answers={11: "B", 12: "A,C"}, server_attempt_id=7)


def test_attempts_are_serialized_with_camel_case_fields():
    backend = InMemoryKeyValueStore()
    LocalAttemptStore(backend, STORAGE_KEY).save_attempt(_attempt(answers={11: "B"}))

    document = json.loads(backend.get(STORAGE_KEY))

    assert document["local_1"] == {
        "attemptId": "local_1",
        "quizId": 1,
        "studentInfo": {"name": "An", "dateOfBirth": "2010-04-02", "className": "9A"},
        "startAt": STARTED.isoformat(),
        "answers": {"11": "B"},
    }


def test_find_by_quiz_and_remove_by_quiz():
    store = LocalAttemptStore(InMemoryKeyValueStore(), STORAGE_KEY)
    store.save_attempt(_attempt("local_1", quiz_id=1))
    store.save_attempt(_attempt("local_2", quiz_id=2))

    assert store.find_by_quiz(2).attempt_id == "local_2"
    assert store.find_by_quiz(3) is None

    store.remove_by_quiz(1)
    assert list(store.get_all_attempts()) == ["local_2"]


def test_update_answer_and_link_server_attempt():
    store = LocalAttemptStore(InMemoryKeyValueStore(), STORAGE_KEY)
    store.save_attempt(_attempt())

    store.update_answer("local_1", 11, "C")
    store.link_server_attempt("local_1", 42)

    attempt = store.get_attempt("local_1")
    assert attempt.answers == {11: "C"}
    assert attempt.server_attempt_id == 42


def test_updates_to_unknown_attempts_are_ignored():
    backend = InMemoryKeyValueStore()
    store = LocalAttemptStore(backend, STORAGE_KEY)

    store.update_answer("local_missing", 11, "C")
    store.link_server_attempt("local_missing", 42)
    store.remove_attempt("local_missing")

    assert backend.get(STORAGE_KEY) is None


def test_corrupted_storage_reads_as_empty():
    backend = InMemoryKeyValueStore()
    backend.set(STORAGE_KEY, "{not json")
    store = LocalAttemptStore(backend, STORAGE_KEY)

    assert store.get_all_attempts() == {}
    assert store.find_by_quiz(1) is None


def test_unreadable_entries_are_skipped():
    backend = InMemoryKeyValueStore()
    store = LocalAttemptStore(backend, STORAGE_KEY)
    store.save_attempt(_attempt())
    document = json.loads(backend.get(STORAGE_KEY))
    document["local_bad"] = {"quizId": "x", "startAt": "yesterday"}
    backend.set(STORAGE_KEY, json.dumps(document))

    assert list(store.get_all_attempts()) == ["local_1"]


def test_unavailable_backend_never_raises():
    store = LocalAttemptStore(UnavailableStore(), STORAGE_KEY)

    store.save_attempt(_attempt())
    store.remove_by_quiz(1)

    assert store.get_all_attempts() == {}
    assert store.get_attempt("local_1") is None


def test_corrupted_storage_file_is_treated_as_empty(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("[1, 2", encoding="utf-8")
    store = LocalAttemptStore(JsonFileKeyValueStore(path), STORAGE_KEY)

    assert store.get_all_attempts() == {}
    store.save_attempt(_attempt())
    assert list(store.get_all_attempts()) == ["local_1"]


def test_non_text_answers_are_dropped_on_read():
    backend = InMemoryKeyValueStore()
    store = LocalAttemptStore(backend, STORAGE_KEY)
    store.save_attempt(_attempt(answers={11: "B"}))
    document = json.loads(backend.get(STORAGE_KEY))
    document["local_1"]["answers"].update({"12": None, "13": 4})
    backend.set(STORAGE_KEY, json.dumps(document))

    assert store.get_attempt("local_1").answers == {11: "B"}
