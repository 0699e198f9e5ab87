import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from connectlocal.realtime.hub import RealtimeHub
from connectlocal.realtime.hub import install_hub
from connectlocal.realtime.hub import reset_hub
from connectlocal.users.models import User
from tests.factories import make_admin
from tests.factories import make_user
from tests.realtime import FakeSocketServer


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def socket_server() -> FakeSocketServer:
    return FakeSocketServer()


@pytest.fixture(autouse=True)
def hub(socket_server) -> RealtimeHub:
    installed = install_hub(RealtimeHub(socket_server))
    yield installed
    reset_hub()


@pytest.fixture
def user(db) -> User:
    return make_user("alice")


@pytest.fixture
def other_user(db) -> User:
    return make_user("bob")


@pytest.fixture
def admin_user(db) -> User:
    return make_admin("support")


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def client_for(api_client):
    def _login(user) -> APIClient:
        api_client.force_authenticate(user=user)
        return api_client

    return _login
