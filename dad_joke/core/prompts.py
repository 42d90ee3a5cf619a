"""
Prompt construction for joke generation.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

SYSTEM_PROMPT = (
    "You are a friendly comedian who tells short, clean, family-friendly jokes. "
    "Reply with the joke only, no introduction or explanation."
)

GENERIC_INSTRUCTION = "Tell me a clean, family-friendly joke. Just return the joke, nothing else."

KEYWORD_INSTRUCTION = (
    "Tell me a clean, family-friendly joke about {keywords}. "
    "Just return the joke, nothing else."
)


@dataclass(frozen=True)
class Prompt:
    """System/user message pair sent to the chat-completion API."""
    system: str
    user: str

    def to_messages(self) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


def normalize_keywords(keywords: Optional[str]) -> Optional[str]:
    """Trim keywords, mapping blank input to None."""
    if keywords is None:
        return None
    keywords = str(keywords).strip()
    return keywords or None


def build_prompt(keywords: Optional[str] = None) -> Prompt:
    """Build the prompt for an optional keyword string.

    Blank or whitespace-only keywords get the same generic instruction as
    absent ones.
    """
    topic = normalize_keywords(keywords)
    if topic is None:
        return Prompt(system=SYSTEM_PROMPT, user=GENERIC_INSTRUCTION)
    return Prompt(system=SYSTEM_PROMPT, user=KEYWORD_INSTRUCTION.format(keywords=topic))
