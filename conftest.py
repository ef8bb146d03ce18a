import pytest

from rpg_chat.models import Character, RPGStats, World
from rpg_chat.storage import Storage

USER = "user-1"


@pytest.fixture
def storage(tmp_path):
    """Fresh JSON store in a temp dir for every test."""
    return Storage(tmp_path / "data")


@pytest.fixture
def world(storage):
    return storage.create_world(World(
        user_id=USER, name="Dragon's Hollow", description="A mountain village.",
        lore="The dragon sleeps under the mill.", rules="No magic.",
    ))


@pytest.fixture
def character(storage, world):
    return storage.create_character(Character(
        user_id=USER,
        world_id=world.id,
        name="Gareth",
        description="Captain of the watch.",
        personality="Gruff but loyal.",
        is_rpg_enabled=True,
        base_stats=RPGStats(hp=80, max_hp=80),
    ))
