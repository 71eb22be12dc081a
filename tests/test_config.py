from pathlib import Path

from problemboard.config import load_config


def test_defaults():
    config = load_config({})
    assert config["DATA_FILE"] == Path(".") / "data.json"
    assert config["ADMIN_USERS"] == set()
    assert config["PERSIST_INTERVAL"] == 30.0
    assert config["SESSION_TTL_MS"] == 30 * 24 * 60 * 60 * 1000
    assert config["PORT"] == 3000
    assert config["START_SCHEDULER"] is True
    assert config["SECRET_KEY"]


def test_environment_overrides():
    config = load_config({
        "DATA_DIR": "/var/lib/board",
        "ADMIN_USERS": " alice, ,bob ",
        "PERSIST_INTERVAL": "5",
        "SESSION_TTL_DAYS": "1",
        "START_SCHEDULER": "off",
        "PROBLEMBOARD_SECRET": "s3cret",
    })
    assert config["DATA_FILE"] == Path("/var/lib/board/data.json")
    assert config["ADMIN_USERS"] == {"alice", "bob"}
    assert config["PERSIST_INTERVAL"] == 5.0
    assert config["SESSION_TTL_MS"] == 24 * 60 * 60 * 1000
    assert config["START_SCHEDULER"] is False
    assert config["SECRET_KEY"] == "s3cret"
