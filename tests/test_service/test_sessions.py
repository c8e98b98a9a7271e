"""
Tests for the in-memory session store.
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from scanlogin.core.session import SessionStatus
from scanlogin.service import sessions as session_service


def test_create_then_get(store):
    session = store.create(scene="abc123", ttl=timedelta(seconds=300))

    assert session.status == SessionStatus.PENDING
    assert session.subject == ""
    assert session.expires_at - session.created_at == timedelta(seconds=300)

    read = store.get("abc123")

    assert read == session
    assert len(store) == 1


def test_create_duplicate_scene_is_rejected(store):
    store.create(scene="abc123", ttl=timedelta(seconds=300), qrcode_url="first")

    with pytest.raises(session_service.DuplicateScene):
        store.create(scene="abc123", ttl=timedelta(seconds=300), qrcode_url="second")

    assert store.get("abc123").qrcode_url == "first"


def test_get_unknown_scene(store):
    with pytest.raises(session_service.SessionNotFound):
        store.get("zzz")


def test_complete_unknown_scene(store):
    with pytest.raises(session_service.SessionNotFound):
        store.complete(scene="zzz", subject="OPENID1")

    assert len(store) == 0


def test_complete_first_writer_wins(store):
    store.create(scene="abc123", ttl=timedelta(seconds=300))

    first = store.complete(scene="abc123", subject="OPENID_A", label="A")
    second = store.complete(scene="abc123", subject="OPENID_B", label="B")

    assert first.status == SessionStatus.COMPLETED
    assert second == first

    session = store.get("abc123")

    assert session.status == SessionStatus.COMPLETED
    assert session.subject == "OPENID_A"
    assert session.display_label == "A"


def test_complete_requires_subject(store):
    store.create(scene="abc123", ttl=timedelta(seconds=300))

    with pytest.raises(ValueError):
        store.complete(scene="abc123", subject="")

    assert store.get("abc123").status == SessionStatus.PENDING


def test_snapshots_are_not_mutated_by_completion(store):
    store.create(scene="abc123", ttl=timedelta(seconds=300))
    before = store.get("abc123")

    store.complete(scene="abc123", subject="OPENID1")

    assert before.status == SessionStatus.PENDING
    assert before.subject == ""


def test_evict_expired_respects_grace(store):
    now = datetime.now(timezone.utc)
    grace = timedelta(minutes=5)

    store.create(scene="old", ttl=timedelta(seconds=300), now=now - timedelta(hours=1))
    store.create(scene="recent", ttl=timedelta(seconds=300), now=now - timedelta(minutes=6))
    store.create(scene="fresh", ttl=timedelta(seconds=300), now=now)

    evicted = store.evict_expired(now=now, grace=grace)

    assert evicted == 1

    with pytest.raises(session_service.SessionNotFound):
        store.get("old")

    # Expired at now - 1 min, still inside the grace period.
    assert store.get("recent").scene == "recent"
    assert store.get("fresh").scene == "fresh"

    assert store.evict_expired(now=now + timedelta(minutes=11), grace=grace) == 2
    assert len(store) == 0


def test_take_only_removes_completed(store):
    store.create(scene="abc123", ttl=timedelta(seconds=300))

    assert store.take("abc123").status == SessionStatus.PENDING
    assert "abc123" in store

    store.complete(scene="abc123", subject="OPENID1")

    assert store.take("abc123").subject == "OPENID1"

    with pytest.raises(session_service.SessionNotFound):
        store.take("abc123")


def test_completion_visible_across_threads(store):
    store.create(scene="abc123", ttl=timedelta(seconds=300))

    worker = threading.Thread(
        target=store.complete, kwargs={"scene": "abc123", "subject": "OPENID1"}
    )
    worker.start()
    worker.join()

    session = store.get("abc123")

    assert session.status == SessionStatus.COMPLETED
    assert session.subject == "OPENID1"


def test_concurrent_completions_have_single_winner(store):
    store.create(scene="abc123", ttl=timedelta(seconds=300))

    subjects = [f"OPENID{i}" for i in range(16)]
    results = {}
    barrier = threading.Barrier(len(subjects))

    def complete(subject):
        barrier.wait()
        results[subject] = store.complete(scene="abc123", subject=subject)

    workers = [threading.Thread(target=complete, args=(s,)) for s in subjects]

    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    winners = {session.subject for session in results.values()}

    assert len(winners) == 1
    assert store.get("abc123").subject in winners
