import random

import pytest

from plotform.generate.ideas import FALLBACK_IDEA, PROMPT_LIBRARY, enhance_idea, random_idea
from plotform.run_utils.store import MemoryIdeaHistory, push_idea
from plotform.utils.errors import ShapeError


class TestRandomIdea:
    def test_known_category(self):
        assert random_idea("Podcast", random.Random(1)) in PROMPT_LIBRARY["Podcast"]

    def test_unknown_category_uses_default(self):
        assert random_idea("Interpretive Dance", random.Random(1)) in PROMPT_LIBRARY["Default"]

    def test_vlog_series_shares_youtube_prompts(self):
        assert PROMPT_LIBRARY["Vlog Series"] is PROMPT_LIBRARY["YouTube Series"]

    def test_empty_library_falls_back(self, monkeypatch):
        monkeypatch.setitem(PROMPT_LIBRARY, "Default", [])
        assert random_idea("Interpretive Dance") == FALLBACK_IDEA


class TestEnhanceIdea:
    @pytest.mark.asyncio
    async def test_returns_rewritten_prompt(self, client, caller):
        client.queue("enhance", {"prompt": "  A richer idea.  "})

        assert await enhance_idea("", "idea", caller=caller) == "A richer idea."
        assert '"idea"' in client.prompts_for("enhance")[0]

    @pytest.mark.asyncio
    async def test_empty_rewrite_is_a_shape_error(self, client, caller):
        client.queue("enhance", {"prompt": ""})

        with pytest.raises(ShapeError):
            await enhance_idea("", "idea", caller=caller)


class TestIdeaHistory:
    def test_most_recent_first_without_duplicates(self):
        assert push_idea(["b", "a"], "a") == ["a", "b"]

    def test_capped_at_four(self):
        history = MemoryIdeaHistory()
        for idea in ["one", "two", "three", "four", "five"]:
            history.remember_idea("alice", idea)
        assert history.list_ideas("alice") == ["five", "four", "three", "two"]

    def test_blank_idea_is_ignored(self):
        assert push_idea(["a"], "   ") == ["a"]
