"""Tests for automatic memory extraction."""

from unittest.mock import AsyncMock, patch

from vivica.memory.engine import MemoryEngine
from vivica.memory.extractor import (
    extract_and_save,
    extract_candidates,
    save_candidates,
)
from vivica.memory.models import MemoryCategory
from vivica.storage.store import Store

# -- extract_candidates --------------------------------------------------------


def test_mixed_message_yields_three_entries() -> None:
    result = extract_candidates("I like hiking and I prefer tea over coffee. My name is Alex.")

    assert len(result) == 3
    prefs = [m for m in result if m.category is MemoryCategory.PREFERENCES]
    personal = [m for m in result if m.category is MemoryCategory.PERSONAL]
    assert [m.content for m in prefs] == ["User i like hiking", "User i prefer tea over coffee"]
    assert all(m.importance == 6 for m in prefs)
    assert len(personal) == 1
    assert personal[0].content == "My name is Alex"
    assert personal[0].importance == 8


def test_assistant_text_is_never_scanned() -> None:
    result = extract_candidates("Hello there", "I love helping. My name is Vivica.")
    assert result == []


def test_preference_content_is_lowercased() -> None:
    result = extract_candidates("My Favorite is Jazz Music!")
    assert [m.content for m in result] == ["User my favorite is jazz music"]


def test_personal_content_keeps_case() -> None:
    result = extract_candidates("I live in New York, mostly.")
    assert [m.content for m in result] == ["I live in New York"]
    assert result[0].category is MemoryCategory.PERSONAL


def test_call_me_pattern() -> None:
    result = extract_candidates("Please call me Sam")
    assert [m.content for m in result] == ["call me Sam"]


def test_goal_pattern() -> None:
    result = extract_candidates("My goal is to run a marathon.")
    assert len(result) == 1
    assert result[0].content == "User wants to run a marathon"
    assert result[0].category is MemoryCategory.OTHER
    assert result[0].importance == 7


def test_want_to_matches_preference_and_goal() -> None:
    """Overlapping patterns each produce an entry; there is no deduplication."""
    result = extract_candidates("I want to learn Rust.")
    categories = sorted(m.category.value for m in result)
    assert categories == ["other", "preferences"]
    goal = next(m for m in result if m.category is MemoryCategory.OTHER)
    assert goal.content == "User wants to learn Rust"


def test_multiple_matches_per_pattern() -> None:
    result = extract_candidates("I love cats. I enjoy long walks!")
    assert [m.content for m in result] == ["User i love cats", "User i enjoy long walks"]


def test_case_insensitive() -> None:
    result = extract_candidates("i LIKE pizza")
    assert [m.content for m in result] == ["User i like pizza"]


def test_no_match_inside_words() -> None:
    assert extract_candidates("Chi like that is rare") == []


def test_tags_include_profile() -> None:
    result = extract_candidates("I like tea", profile_id="work")
    assert result[0].tags == ["auto-extracted", "preference", "profile:work"]


def test_tags_skip_global_and_default_profiles() -> None:
    for profile_id in ("global", "default", None):
        result = extract_candidates("I like tea", profile_id=profile_id)
        assert result[0].tags == ["auto-extracted", "preference"]


def test_personal_and_goal_tags() -> None:
    result = extract_candidates("My name is Alex. My goal is to travel.")
    assert result[0].tags == ["auto-extracted", "personal-info"]
    assert result[1].tags == ["auto-extracted", "goal"]


def test_empty_message() -> None:
    assert extract_candidates("") == []


# -- save_candidates / extract_and_save ----------------------------------------


async def test_save_candidates_counts_only_saved() -> None:
    engine = AsyncMock()
    engine.add.side_effect = [object(), None]
    candidates = extract_candidates("I like tea. I love cake.")
    assert await save_candidates(engine, candidates) == 1


async def test_extract_and_save_persists(engine: MemoryEngine, store: Store) -> None:
    count = await extract_and_save(
        engine,
        "I like hiking and I prefer tea over coffee. My name is Alex.",
        "Nice to meet you, Alex!",
        profile_id="work",
    )

    assert count == 3
    stored = await store.get_memories()
    assert len(stored) == 3
    assert all("profile:work" in m.tags for m in stored)
    assert stored[0].category is MemoryCategory.PERSONAL


async def test_extract_and_save_does_not_deduplicate(engine: MemoryEngine) -> None:
    await extract_and_save(engine, "I like tea.", "ok")
    await extract_and_save(engine, "I like tea.", "ok")
    assert len(engine.memories) == 2


async def test_extract_disabled_is_noop(engine: MemoryEngine) -> None:
    with patch("vivica.memory.extractor.settings") as mock_settings:
        mock_settings.memory_extraction_enabled = False
        assert await extract_and_save(engine, "I like tea", "ok") == 0
    assert engine.memories == []


async def test_extract_failure_is_non_fatal() -> None:
    engine = AsyncMock()
    engine.add.side_effect = RuntimeError("boom")
    assert await extract_and_save(engine, "I like tea", "ok") == 0
