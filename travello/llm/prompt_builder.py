from __future__ import annotations

"""Prompt construction helpers for the Travello assistant.

All model-facing messages should be assembled via this module so we maintain
one single source of truth for the system persona and the turn layout.

Templates live in ``travello/prompts/`` and use Jinja2 for simple variable
substitution.  Anything more complex than loops / conditionals should be
implemented in Python and passed into the template context as plain data.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Sequence

import jinja2

from travello.llm.history import ContextEntry

# ---------------------------------------------------------------------------
# Paths & Jinja environment
# ---------------------------------------------------------------------------

BASE_DIR = Path(__file__).resolve().parent.parent  # travello/
PROMPTS_DIR = BASE_DIR / "prompts"

ASSISTANT_NAME = "Travello Assistant"

# Lazy-initialised Jinja environment so we only pay the cost once.
_ENV: jinja2.Environment | None = None

# Travel keywords that mark a conversation topic, checked in this order.
TOPIC_KEYWORDS = (
    # Destinasi
    "bali", "jakarta", "yogyakarta", "bandung", "surabaya", "malang", "lombok",
    "medan", "makassar", "raja ampat", "labuan bajo",
    "pantai", "gunung", "danau", "air terjun", "pulau", "wisata", "destinasi",
    # Aktivitas
    "liburan", "snorkeling", "diving", "hiking", "camping", "surfing",
    # Akomodasi & transportasi
    "hotel", "hostel", "villa", "resort", "penginapan", "homestay",
    "pesawat", "kereta", "bus", "kapal", "transportasi",
    # Kuliner
    "kuliner", "makanan", "restoran", "cafe", "warung",
    # Tips & persiapan
    "packing", "tips", "budget", "hemat", "cuaca", "musim",
    # Budaya & alam
    "budaya", "sejarah", "candi", "museum", "festival", "sunset", "sunrise",
)

MAX_TOPICS = 5

# Our turn vocabulary -> chat-completions roles.
_CHAT_ROLES = {"user": "user", "model": "assistant"}


def _get_env() -> jinja2.Environment:
    global _ENV
    if _ENV is None:
        _ENV = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(PROMPTS_DIR)),
            autoescape=False,  # we do not render HTML
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _ENV


# ---------------------------------------------------------------------------
# Context helpers
# ---------------------------------------------------------------------------

def extract_topics(texts: Iterable[str], limit: int = MAX_TOPICS) -> List[str]:
    """Return up to ``limit`` distinct travel topics mentioned in ``texts``."""
    topics: List[str] = []
    for text in texts:
        lowered = (text or "").lower()
        for keyword in TOPIC_KEYWORDS:
            if keyword in lowered and keyword not in topics:
                topics.append(keyword)
                if len(topics) >= limit:
                    return topics
    return topics


def render_system_prompt(previous_topics: Sequence[str] | None = None) -> str:
    env = _get_env()
    return env.get_template("system_prompt.jinja").render(
        assistant_name=ASSISTANT_NAME,
        previous_topics=list(previous_topics or []),
    ).strip()


# ---------------------------------------------------------------------------
# Public API – build the messages list
# ---------------------------------------------------------------------------

def build_messages(
    message: str,
    *,
    context: Sequence[ContextEntry] | None = None,
) -> List[Dict[str, str]]:
    """Return a list of ChatCompletion-style messages.

    Parameters
    ----------
    message
        The new user message.
    context
        Previous turns, oldest first, in the ``user`` / ``model`` vocabulary.
        ``model`` turns are sent with the ``assistant`` role.
    """
    context = list(context or [])
    topics = extract_topics(entry.text for entry in context)

    messages: List[Dict[str, str]] = [
        {"role": "system", "content": render_system_prompt(topics)},
    ]

    # Inject previous chat turns so the model has the full conversation.
    for entry in context:
        role = _CHAT_ROLES.get(entry.role)
        if role and entry.text.strip():
            messages.append({"role": role, "content": entry.text})

    # Finally the *current* user message.
    messages.append({"role": "user", "content": message})
    return messages
