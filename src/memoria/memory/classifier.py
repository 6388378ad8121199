"""Heuristic importance classifier for completed conversation turns."""

from dataclasses import dataclass

HIGH_PRIORITY_KEYWORDS: tuple[str, ...] = (
    "remember",
    "important",
    "never forget",
    "always",
    "preference",
    "favorite",
    "hate",
    "love",
    "birthday",
    "anniversary",
    "family",
    "work",
    "job",
    "address",
    "phone",
    "email",
    "password",
    "secret",
)

MEDIUM_PRIORITY_KEYWORDS: tuple[str, ...] = (
    "like",
    "dislike",
    "usually",
    "often",
    "sometimes",
    "hobby",
    "interest",
    "goal",
    "plan",
    "schedule",
    "meeting",
    "appointment",
)

# tag -> substrings that apply it, checked independently
TOPIC_TAGS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("work", ("work", "job")),
    ("family", ("family", "parent")),
    ("hobby", ("hobby", "interest")),
    ("preference", ("preference", "like")),
    ("schedule", ("schedule", "time")),
    ("goal", ("goal", "plan")),
)

DEFAULT_TAG = "general"
HIGH_PRIORITY = 5
MEDIUM_PRIORITY = 3


@dataclass(frozen=True)
class Classification:
    """Proposed importance entry for a turn."""

    content: str
    tags: tuple[str, ...]
    priority: int


class ImportanceClassifier:
    """Decides whether a turn should be promoted to long-term importance memory.

    Pure and deterministic: keyword membership over the lower-cased turn text,
    no I/O.
    """

    def __init__(
        self,
        high_keywords: tuple[str, ...] = HIGH_PRIORITY_KEYWORDS,
        medium_keywords: tuple[str, ...] = MEDIUM_PRIORITY_KEYWORDS,
        topic_tags: tuple[tuple[str, tuple[str, ...]], ...] = TOPIC_TAGS,
    ):
        self.high_keywords = high_keywords
        self.medium_keywords = medium_keywords
        self.topic_tags = topic_tags

    def classify(self, user_text: str, agent_text: str) -> Classification | None:
        """Return a proposed entry, or None when the turn is not worth keeping."""
        text = f"{user_text} {agent_text}".lower()

        has_high = any(keyword in text for keyword in self.high_keywords)
        has_medium = any(keyword in text for keyword in self.medium_keywords)
        if not has_high and not has_medium:
            return None

        return Classification(
            content=f"User: {user_text}\nAgent: {agent_text}",
            tags=self.tags_for(text),
            priority=HIGH_PRIORITY if has_high else MEDIUM_PRIORITY,
        )

    def tags_for(self, text: str) -> tuple[str, ...]:
        """Topic tags for already lower-cased text."""
        tags = tuple(
            tag for tag, markers in self.topic_tags if any(marker in text for marker in markers)
        )
        return tags or (DEFAULT_TAG,)
