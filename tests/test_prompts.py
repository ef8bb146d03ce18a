"""Tests for Handlebars prompt rendering and system prompt composition."""

import pytest

from rpg_chat.models import (
    CharacterProfile,
    ChatRequest,
    ChatTurn,
    RPGState,
    WorldProfile,
)
from rpg_chat.prompts import (
    MATURE_GUIDELINES,
    ROLEPLAY_INSTRUCTIONS,
    SAFE_GUIDELINES,
    PromptError,
    build_context,
    build_upstream_payload,
    compose_system_prompt,
    render_prompt,
)


def _request(**kwargs) -> ChatRequest:
    defaults = {
        "messages": [ChatTurn(role="user", content="Hello there")],
        "character": CharacterProfile(name="Gareth", personality="Gruff but loyal."),
    }
    return ChatRequest(**{**defaults, **kwargs})


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_triple_stash_does_not_escape():
    assert render_prompt("{{{text}}}", {"text": "<b>&</b>"}) == "<b>&</b>"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


# ── build_context ────────────────────────────────────────────


def test_build_context_without_rpg():
    ctx = build_context(_request(rpg_state=RPGState()))
    assert ctx["character"]["name"] == "Gareth"
    assert ctx["world"] is None
    assert ctx["memories"] == []
    assert ctx["rpg"] is None


def test_build_context_rpg_listings():
    state = RPGState(hp=40, max_hp=80, inventory=["Rope", "Torch"])
    ctx = build_context(_request(is_rpg_mode=True, rpg_state=state))
    assert ctx["rpg"] == {
        "hp": 40,
        "max_hp": 80,
        "inventory": "Rope, Torch",
        "skills": "None",
        "status_effects": "None",
    }


def test_build_context_rpg_mode_without_state():
    ctx = build_context(_request(is_rpg_mode=True))
    assert ctx["rpg"] is None


# ── compose_system_prompt ────────────────────────────────────


def test_minimal_prompt():
    prompt = compose_system_prompt(_request())
    assert prompt.startswith("You are Gareth, a character in an immersive roleplay experience.")
    assert "- Personality: Gruff but loyal." in prompt
    assert "- Backstory:" not in prompt
    assert "WORLD/SETTING" not in prompt
    assert "IMPORTANT MEMORIES" not in prompt
    assert "RPG MODE ACTIVE" not in prompt
    assert prompt.endswith(SAFE_GUIDELINES + ROLEPLAY_INSTRUCTIONS)


def test_mature_guidelines_when_safe_mode_off():
    prompt = compose_system_prompt(_request(safe_mode=False))
    assert MATURE_GUIDELINES in prompt
    assert SAFE_GUIDELINES not in prompt


def test_world_block():
    world = WorldProfile(name="Dragon's Hollow", lore="The dragon sleeps.")
    prompt = compose_system_prompt(_request(world=world))
    assert "- World Name: Dragon's Hollow" in prompt
    assert "- Lore: The dragon sleeps." in prompt
    assert "- World Rules:" not in prompt


def test_memories_block():
    prompt = compose_system_prompt(_request(memories=["Owes the smith 5 gold", "Fears <rats>"]))
    assert "IMPORTANT MEMORIES" in prompt
    assert "- Owes the smith 5 gold\n" in prompt
    assert "- Fears <rats>\n" in prompt


def test_rpg_block():
    state = RPGState(hp=12, max_hp=80, skills=["Stealth"])
    prompt = compose_system_prompt(_request(is_rpg_mode=True, rpg_state=state))
    assert "RPG MODE ACTIVE" in prompt
    assert "- HP: 12/80" in prompt
    assert "- Inventory: Empty" in prompt
    assert "- Skills: Stealth" in prompt
    assert "[DICE:XdY]" in prompt


def test_rpg_block_omitted_when_not_rpg_mode():
    prompt = compose_system_prompt(_request(is_rpg_mode=False, rpg_state=RPGState()))
    assert "RPG MODE ACTIVE" not in prompt


def test_blocks_in_order():
    state = RPGState()
    prompt = compose_system_prompt(_request(
        world=WorldProfile(name="W"), memories=["m"], is_rpg_mode=True, rpg_state=state,
    ))
    order = [
        prompt.index("CHARACTER PROFILE"),
        prompt.index("WORLD/SETTING"),
        prompt.index("IMPORTANT MEMORIES"),
        prompt.index("RPG MODE ACTIVE"),
        prompt.index("CONTENT GUIDELINES"),
        prompt.index("ROLEPLAY INSTRUCTIONS"),
    ]
    assert order == sorted(order)


# ── build_upstream_payload ───────────────────────────────────


def test_upstream_payload():
    request = _request(messages=[
        ChatTurn(role="user", content="Hi"),
        ChatTurn(role="assistant", content="*nods*"),
        ChatTurn(role="user", content="Any news?"),
    ])
    payload = build_upstream_payload(request, "test-model")
    assert payload["model"] == "test-model"
    assert payload["stream"] is True
    assert payload["messages"][0]["role"] == "system"
    assert payload["messages"][1:] == [
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "*nods*"},
        {"role": "user", "content": "Any news?"},
    ]


def test_chat_request_accepts_camel_case():
    request = ChatRequest.model_validate({
        "messages": [{"role": "user", "content": "Hi"}],
        "character": {"name": "Gareth"},
        "isRpgMode": True,
        "rpgState": {"hp": 5, "max_hp": 10},
        "safeMode": False,
        "somethingElse": 1,
    })
    assert request.is_rpg_mode is True
    assert request.rpg_state.hp == 5
    assert request.safe_mode is False
