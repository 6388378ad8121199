"""Tests for the importance classifier."""

from memoria.memory.classifier import (
    DEFAULT_TAG,
    HIGH_PRIORITY,
    MEDIUM_PRIORITY,
    Classification,
    ImportanceClassifier,
)


def test_password_is_high_priority_general():
    result = ImportanceClassifier().classify("my password is x", "Noted.")

    assert result == Classification(
        content="User: my password is x\nAgent: Noted.",
        tags=(DEFAULT_TAG,),
        priority=HIGH_PRIORITY,
    )


def test_medium_keyword():
    result = ImportanceClassifier().classify("I usually swim on Sundays", "Sounds fun.")

    assert result is not None
    assert result.priority == MEDIUM_PRIORITY
    assert result.tags == (DEFAULT_TAG,)


def test_high_wins_over_medium():
    result = ImportanceClassifier().classify("My birthday plan is a hike", "Great.")

    assert result is not None
    assert result.priority == HIGH_PRIORITY
    assert result.tags == ("goal",)


def test_no_keywords_returns_none():
    assert ImportanceClassifier().classify("Hello there", "Hi! How are you?") is None


def test_case_insensitive():
    result = ImportanceClassifier().classify("REMEMBER THIS", "Okay.")
    assert result is not None
    assert result.priority == HIGH_PRIORITY


def test_agent_text_counts():
    result = ImportanceClassifier().classify("Okay", "I will remember your email.")
    assert result is not None
    assert result.priority == HIGH_PRIORITY


def test_multiple_tags_in_fixed_order():
    result = ImportanceClassifier().classify(
        "My family hobby is sailing and my job is teaching", "Nice."
    )

    assert result is not None
    assert result.tags == ("work", "family", "hobby")


def test_pure_and_deterministic():
    classifier = ImportanceClassifier()
    first = classifier.classify("I love jazz", "Noted.")
    second = classifier.classify("I love jazz", "Noted.")
    assert first == second


def test_tags_for_default():
    assert ImportanceClassifier().tags_for("nothing relevant") == (DEFAULT_TAG,)
