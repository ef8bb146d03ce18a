"""System prompt composition for the chat proxy.

The system prompt is assembled from Handlebars blocks, in order: character
profile, world (if any), pinned memories (if any), RPG mode (only when the
session is in RPG mode and carries a state), content guidelines (safe or
mature) and the roleplay instructions. Templates use triple-stash so user
text goes through unescaped.
"""

from collections.abc import Callable
from typing import Any

import pybars

from rpg_chat.models import ChatRequest

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


CHARACTER_TEMPLATE = """\
You are {{{character.name}}}, a character in an immersive roleplay experience.

CHARACTER PROFILE:
- Name: {{{character.name}}}
{{#if character.description}}- Description: {{{character.description}}}
{{/if}}{{#if character.personality}}- Personality: {{{character.personality}}}
{{/if}}{{#if character.backstory}}- Backstory: {{{character.backstory}}}
{{/if}}{{#if character.speaking_style}}- Speaking Style: {{{character.speaking_style}}}
{{/if}}{{#if character.rules}}- Character Rules: {{{character.rules}}}
{{/if}}"""

WORLD_TEMPLATE = """
WORLD/SETTING:
- World Name: {{{world.name}}}
{{#if world.description}}- Description: {{{world.description}}}
{{/if}}{{#if world.lore}}- Lore: {{{world.lore}}}
{{/if}}{{#if world.rules}}- World Rules: {{{world.rules}}}
{{/if}}"""

MEMORIES_TEMPLATE = """
IMPORTANT MEMORIES (things you remember from past interactions):
{{#each memories}}- {{{this}}}
{{/each}}"""

RPG_TEMPLATE = """
RPG MODE ACTIVE:
You are participating in a text-based RPG. Current player stats:
- HP: {{rpg.hp}}/{{rpg.max_hp}}
- Inventory: {{{rpg.inventory}}}
- Skills: {{{rpg.skills}}}
- Status Effects: {{{rpg.status_effects}}}

When the user performs actions, you should:
1. Describe the outcome narratively
2. If combat or skill checks are involved, indicate when dice rolls are needed using [DICE:XdY] format (e.g., [DICE:1d20] for a skill check)
3. Suggest stat changes using [STAT_CHANGE:hp:-10] or [ITEM:+Rusty Sword] format
4. Keep the story engaging and reactive to player choices
"""

SAFE_GUIDELINES = """
CONTENT GUIDELINES:
- Keep all content appropriate and safe
- Avoid explicit violence, gore, or adult themes
- Focus on adventure, story, and character development
"""

MATURE_GUIDELINES = """
CONTENT GUIDELINES:
- Mature themes are allowed but keep it tasteful
- Focus on narrative quality and character depth
"""

ROLEPLAY_INSTRUCTIONS = """
ROLEPLAY INSTRUCTIONS:
- Stay in character at all times
- Write in a narrative style with dialogue and action descriptions
- Use *asterisks* for actions and descriptions
- React authentically based on your personality and the situation
- Create engaging, immersive responses that advance the story
- Keep responses between 100-300 words for good pacing
"""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def _listing(items: list[str], empty: str) -> str:
    return ", ".join(items) if items else empty


def build_context(request: ChatRequest) -> dict[str, Any]:
    """Assemble template variables from a chat request."""
    ctx: dict[str, Any] = {
        "character": request.character.model_dump(),
        "world": request.world.model_dump() if request.world else None,
        "memories": list(request.memories),
        "rpg": None,
    }
    if request.is_rpg_mode and request.rpg_state is not None:
        state = request.rpg_state
        ctx["rpg"] = {
            "hp": state.hp,
            "max_hp": state.max_hp,
            "inventory": _listing(state.inventory, "Empty"),
            "skills": _listing(state.skills, "None"),
            "status_effects": _listing(state.status_effects, "None"),
        }
    return ctx


def compose_system_prompt(request: ChatRequest) -> str:
    ctx = build_context(request)
    parts = [render_prompt(CHARACTER_TEMPLATE, ctx)]
    if ctx["world"]:
        parts.append(render_prompt(WORLD_TEMPLATE, ctx))
    if ctx["memories"]:
        parts.append(render_prompt(MEMORIES_TEMPLATE, ctx))
    if ctx["rpg"]:
        parts.append(render_prompt(RPG_TEMPLATE, ctx))
    parts.append(SAFE_GUIDELINES if request.safe_mode else MATURE_GUIDELINES)
    parts.append(ROLEPLAY_INSTRUCTIONS)
    return "".join(parts)


def build_upstream_payload(request: ChatRequest, model: str) -> dict[str, Any]:
    """Request body for an OpenAI-compatible streaming chat completion."""
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": compose_system_prompt(request)},
            *(turn.model_dump() for turn in request.messages),
        ],
        "stream": True,
    }
