import pytest

from livechat.api.auth import ApiKeyAuthenticator, parse_keys
from livechat.config import Settings
from livechat.core.domain import Role
from livechat.errors import Unauthenticated


@pytest.fixture
def authenticator():
    settings = Settings(
        operator_api_keys=["op-key=agent-1:Alice", "broken-entry"],
        admin_api_keys=["root-key=admin-1"],
        customer_api_keys=["cust-key=cust-7:Carol"],
    )
    return ApiKeyAuthenticator.from_settings(settings)


def test_parse_keys_skips_malformed_entries():
    keys = parse_keys(["a=agent-1:Alice Smith", "no-separator", "=x", "b="], Role.agent)
    assert list(keys) == ["a"]
    assert keys["a"].participant_id == "agent-1"
    assert keys["a"].display_name == "Alice Smith"


def test_token_roles(authenticator):
    assert authenticator.authenticate(token="op-key").role is Role.agent
    assert authenticator.authenticate(token="root-key").role is Role.admin
    carol = authenticator.authenticate(token="cust-key")
    assert carol.role is Role.customer
    assert carol.name == "Carol"
    assert not carol.is_guest


def test_unknown_token(authenticator):
    with pytest.raises(Unauthenticated):
        authenticator.authenticate(token="nope")


def test_guest_identity(authenticator):
    guest = authenticator.authenticate(guest_id="browser-1234", name="  Ann ")
    assert guest.participant_id == "guest:browser-1234"
    assert guest.role is Role.customer
    assert guest.is_guest
    assert guest.name == "Ann"
    assert authenticator.authenticate(guest_id="browser-1234").name == "Guest"


@pytest.mark.parametrize("guest_id", ["short", "has space in it", "x" * 65, "semi;colon!"])
def test_malformed_guest_ids(authenticator, guest_id):
    with pytest.raises(Unauthenticated):
        authenticator.authenticate(guest_id=guest_id)


def test_guests_can_be_disabled():
    authenticator = ApiKeyAuthenticator({}, allow_guests=False)
    with pytest.raises(Unauthenticated):
        authenticator.authenticate(guest_id="browser-1234")


def test_no_credentials(authenticator):
    with pytest.raises(Unauthenticated):
        authenticator.authenticate()
