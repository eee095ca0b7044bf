import pytest

from helpers import plan_payload
from plotform.generate.categories import BUILTIN_CATEGORIES
from plotform.generate.sketcher import sketch_plan, validate_sketch
from plotform.utils.errors import PlanningFailure


class TestSketchPlan:
    """One planning call turning an idea into a GenerationPlan."""

    @pytest.mark.asyncio
    async def test_multi_part_plan(self, client, caller):
        client.queue("sketcher", plan_payload(["Origins", "Growth", "Legacy"]))

        plan = await sketch_plan("r1", "12 episodes on jazz", BUILTIN_CATEGORIES, caller=caller)

        assert plan.is_multi_part
        assert plan.part_count == 3
        assert plan.part_descriptions == ["Origins", "Growth", "Legacy"]
        assert plan.suggested_category == "Podcast"
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_prompt_embeds_idea_and_categories(self, client, caller):
        client.queue("sketcher", plan_payload())

        await sketch_plan("r1", "a cooking show", BUILTIN_CATEGORIES, caller=caller)

        prompt = client.prompts_for("sketcher")[0]
        assert "a cooking show" in prompt
        assert "Recipe Builder" in prompt
        assert "Pitch Deck" in prompt

    @pytest.mark.asyncio
    async def test_multi_part_without_descriptions_is_not_retried(self, client, sleeps, caller):
        client.queue("sketcher", {"isMultiPart": True, "totalParts": 3, "suggestedCategory": "Podcast"})

        with pytest.raises(PlanningFailure):
            await sketch_plan("r1", "idea", BUILTIN_CATEGORIES, caller=caller)
        assert len(client.calls) == 1
        assert sleeps.calls == []

    @pytest.mark.asyncio
    async def test_single_part_counts_as_one(self, client, caller):
        client.queue("sketcher", {**plan_payload(), "totalParts": 7})

        plan = await sketch_plan("r1", "idea", BUILTIN_CATEGORIES, caller=caller)

        assert not plan.is_multi_part
        assert plan.part_count == 1


class TestValidateSketch:
    def test_part_count_mismatch(self):
        data = plan_payload(["a", "b"])
        data["totalParts"] = 3
        with pytest.raises(PlanningFailure):
            validate_sketch(data, BUILTIN_CATEGORIES)

    def test_missing_total_is_taken_from_descriptions(self):
        data = plan_payload(["a", "b"])
        del data["totalParts"]
        assert validate_sketch(data, BUILTIN_CATEGORIES).total_parts == 2

    def test_category_match_is_case_insensitive(self):
        plan = validate_sketch(plan_payload(category="music album"), BUILTIN_CATEGORIES)
        assert plan.suggested_category == "Music Album"

    def test_unknown_category_falls_back(self):
        plan = validate_sketch(plan_payload(category="Interpretive Dance"), BUILTIN_CATEGORIES, "Podcast")
        assert plan.suggested_category == "Podcast"

    def test_null_category_falls_back(self):
        plan = validate_sketch({"isMultiPart": False, "suggestedCategory": None}, BUILTIN_CATEGORIES, "Podcast")
        assert plan.suggested_category == "Podcast"
        assert plan.part_count == 1

    def test_missing_category_falls_back(self):
        plan = validate_sketch({"isMultiPart": False}, BUILTIN_CATEGORIES, "Book / Novel")
        assert plan.suggested_category == "Book / Novel"

    def test_non_object_response(self):
        with pytest.raises(PlanningFailure):
            validate_sketch(["not", "a", "plan"], BUILTIN_CATEGORIES)

    def test_wrong_field_types(self):
        with pytest.raises(PlanningFailure):
            validate_sketch({**plan_payload(), "seasonNumber": "first"}, BUILTIN_CATEGORIES)
