"""Tests for demo data seeding."""

from rpg_chat.demo import DEMO_USER, create_demo_data
from rpg_chat.models import World


def test_creates_demo_records(storage):
    gareth = create_demo_data(storage)

    assert [c.name for c in storage.list_characters(DEMO_USER)] == ["Gareth"]
    assert [w.name for w in storage.list_worlds(DEMO_USER)] == ["Dragon's Hollow"]
    sessions = storage.list_sessions(gareth.id)
    assert len(sessions) == 1
    assert sessions[0].title == "Demo Run"
    assert sessions[0].rpg_state.hp == 80
    messages = storage.get_messages(sessions[0].id)
    assert [m.role for m in messages] == ["assistant"]
    assert len(storage.list_memories(gareth.id, gareth.world_id)) == 1


def test_wipes_existing_records(storage):
    storage.create_world(World(user_id=DEMO_USER, name="Leftover"))
    create_demo_data(storage)
    create_demo_data(storage)

    assert [w.name for w in storage.list_worlds(DEMO_USER)] == ["Dragon's Hollow"]
    assert len(storage.list_characters(DEMO_USER)) == 1
