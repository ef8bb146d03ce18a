"""Create demo data for development/testing."""

import shutil

from rpg_chat.controller import start_session
from rpg_chat.models import Character, MemoryEntry, Message, RPGStats, World
from rpg_chat.storage import Storage

DEMO_USER = "local"

DEMO_WORLD = {
    "name": "Dragon's Hollow",
    "description": "A mountain village terrorized by a young dragon.",
    "lore": "Half the village lies in charred ruins. The townsfolk whisper that "
    "the dragon only attacks houses that refused the old tithe.",
    "rules": "Magic is rare and feared. Steel is expensive.",
}

DEMO_CHARACTER = {
    "name": "Gareth",
    "description": "Captain of the village watch, scarred and stubborn.",
    "personality": "Gruff, loyal, secretly afraid of fire.",
    "backstory": "Lost his brother in the first dragon attack.",
    "speaking_style": "Short sentences. Calls everyone 'lad' or 'lass'.",
    "rules": "Never abandons the village.",
    "is_rpg_enabled": True,
}


def create_demo_data(storage: Storage) -> Character:
    """Wipe existing records and create a demo world, character and session."""
    base = storage.base_path
    for name in ("characters", "worlds", "sessions", "memories"):
        (base / f"{name}.json").unlink(missing_ok=True)
    messages_dir = base / "messages"
    if messages_dir.exists():
        shutil.rmtree(messages_dir)
    messages_dir.mkdir(parents=True, exist_ok=True)

    world = storage.create_world(World(user_id=DEMO_USER, **DEMO_WORLD))
    gareth = storage.create_character(Character(
        user_id=DEMO_USER,
        world_id=world.id,
        base_stats=RPGStats(hp=80, max_hp=80, strength=14),
        **DEMO_CHARACTER,
    ))
    storage.create_memory(MemoryEntry(
        user_id=DEMO_USER,
        character_id=gareth.id,
        world_id=world.id,
        content="The player saved Gareth's niece from the burning mill.",
    ))

    session = start_session(storage, gareth, DEMO_USER, title="Demo Run")
    storage.append_message(Message(
        session_id=session.id,
        role="assistant",
        content="*Gareth looks up from the watch fire.* You're the one from the mill. "
        "Sit, lad. We need to talk about the dragon.",
    ))
    return gareth
