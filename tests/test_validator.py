import pytest

from plotform.generate.plan_dto import GeneratedItem, ValidatedPlanResponse
from plotform.generate.validator import validate_plan
from plotform.utils.errors import ValidationFailure


class TestValidatePlan:
    def test_empty_plan_is_rejected(self):
        with pytest.raises(ValidationFailure):
            validate_plan([], "Podcast")

    def test_missing_category_is_rejected(self):
        with pytest.raises(ValidationFailure):
            validate_plan([GeneratedItem(title="Pilot")], "")

    def test_valid_plan(self):
        resp = validate_plan([GeneratedItem(title="Pilot")], "Podcast")
        assert isinstance(resp, ValidatedPlanResponse)
        assert resp.suggested_category == "Podcast"
        assert [i.title for i in resp.plan] == ["Pilot"]

    def test_blank_title_is_rejected(self):
        with pytest.raises(ValidationFailure) as exc:
            validate_plan([GeneratedItem(title="Pilot"), GeneratedItem(title="  ")], "Podcast")
        assert exc.value.failures == ["plan[1] title must be a non-empty string"]

    def test_collects_every_failure(self):
        with pytest.raises(ValidationFailure) as exc:
            validate_plan([GeneratedItem(title="")], None)
        assert len(exc.value.failures) == 2
