import pytest

from problemboard.app import create_app
from problemboard.datastore import DataStore


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "data.json"


@pytest.fixture
def store(data_file):
    return DataStore(data_file)


@pytest.fixture
def app(tmp_path):
    return create_app({
        "DATA_FILE": tmp_path / "data.json",
        "ADMIN_USERS": {"root"},
        "START_SCHEDULER": False,
        "TESTING": True,
    })


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(app, client):
    datastore = app.config["DATASTORE"]

    def _login(github_id, username):
        user, token = datastore.login_external_user(github_id, username, f"https://avatars.example/{username}")
        client.set_cookie("session", token)
        return user

    return _login
