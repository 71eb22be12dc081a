from problemboard import datastore as datastore_module


def test_resolve_live_session_returns_user(store):
    alice = store.create_user(1, "alice", "a.png")
    token = store.create_session(alice["id"], ttl_ms=60_000)
    assert store.resolve_session(token) == alice


def test_resolve_expired_session_removes_it(store, monkeypatch):
    monkeypatch.setattr(datastore_module, "_now_ms", lambda: 1_000)
    alice = store.create_user(1, "alice", "a.png")
    token = store.create_session(alice["id"], ttl_ms=500)
    assert store.get_session(token)["expires_at"] == 1_500

    monkeypatch.setattr(datastore_module, "_now_ms", lambda: 2_000)
    assert store.resolve_session(token) is None
    assert store.get_session(token) is None


def test_session_expiring_now_is_dead(store, monkeypatch):
    monkeypatch.setattr(datastore_module, "_now_ms", lambda: 1_000)
    alice = store.create_user(1, "alice", "a.png")
    token = store.create_session(alice["id"], ttl_ms=0)
    assert store.resolve_session(token) is None


def test_resolve_unknown_or_empty_token(store):
    assert store.resolve_session("nope") is None
    assert store.resolve_session(None) is None
    assert store.resolve_session("") is None


def test_orphaned_session_resolves_to_nothing(store):
    token = store.create_session("ghost-user")
    assert store.resolve_session(token) is None
    assert store.get_session(token) is not None


def test_revoke_is_idempotent(store):
    alice = store.create_user(1, "alice", "a.png")
    token = store.create_session(alice["id"])
    store.revoke_session(token)
    store.revoke_session(token)
    assert store.resolve_session(token) is None


def test_default_ttl_is_thirty_days(store, monkeypatch):
    monkeypatch.setattr(datastore_module, "_now_ms", lambda: 0)
    alice = store.create_user(1, "alice", "a.png")
    token = store.create_session(alice["id"])
    assert store.get_session(token)["expires_at"] == 30 * 24 * 60 * 60 * 1000


def test_purge_expired_sessions(store, monkeypatch):
    monkeypatch.setattr(datastore_module, "_now_ms", lambda: 1_000)
    alice = store.create_user(1, "alice", "a.png")
    short = store.create_session(alice["id"], ttl_ms=10)
    long = store.create_session(alice["id"], ttl_ms=10_000)

    monkeypatch.setattr(datastore_module, "_now_ms", lambda: 5_000)
    assert store.purge_expired_sessions() == 1
    assert store.get_session(short) is None
    assert store.get_session(long) is not None
