from livechat.core.domain import Role
from livechat.core.registry import ConnectionRegistry

from conftest import FakeConnection


def test_multiple_tabs_for_one_agent():
    registry = ConnectionRegistry()
    tab1 = FakeConnection("agent-1", Role.agent)
    tab2 = FakeConnection("agent-1", Role.agent)
    registry.register(tab1)
    registry.register(tab2)

    assert registry.handles_for("agent-1") == {tab1, tab2}
    assert registry.all_agent_handles() == {tab1, tab2}

    registry.unregister(tab1)
    assert registry.handles_for("agent-1") == {tab2}
    assert registry.is_online("agent-1")

    registry.unregister(tab2)
    assert registry.handles_for("agent-1") == set()
    assert not registry.is_online("agent-1")
    assert len(registry) == 0


def test_unknown_handles_are_a_no_op():
    registry = ConnectionRegistry()
    registry.unregister(FakeConnection("nobody", Role.customer))
    assert registry.handles_for("nobody") == set()
    assert registry.handles_for(None) == set()


def test_agent_audience_includes_admins_only():
    registry = ConnectionRegistry()
    agent = FakeConnection("agent-1", Role.agent)
    admin = FakeConnection("admin-1", Role.admin)
    customer = FakeConnection("cust-1", Role.customer)
    for conn in (agent, admin, customer):
        registry.register(conn)

    assert registry.all_agent_handles() == {agent, admin}
    assert registry.handles_for_role(Role.customer) == {customer}


def test_returned_sets_are_copies():
    registry = ConnectionRegistry()
    conn = FakeConnection("cust-1", Role.customer)
    registry.register(conn)
    registry.handles_for("cust-1").clear()
    assert registry.handles_for("cust-1") == {conn}
