"""
Tests for the story wizard: step policies, draft persistence and finalize.
"""

import pytest

from src.yorkiebook.models import StoryParams
from src.yorkiebook.services.wizard_service import (
    APPEARANCE_TEMPLATE,
    DEFAULT_FARM_ELEMENTS,
    DEFAULT_MOOD,
    MemoryDraftStore,
    WizardController,
    normalize_configuration,
)
from src.yorkiebook.utils.errors import ValidationError


@pytest.fixture
def wizard():
    return WizardController(MemoryDraftStore())


@pytest.fixture
def complete_wizard(wizard):
    """Wizard with every step filled in."""
    wizard.save_step_value("appearance", ["Neon Pink & Purple", "Golden Shimmer"])
    wizard.save_step_value("personality", "Brave and Adventurous")
    wizard.save_step_value("story", {
        "theme": "friendship",
        "antagonist": "squirrel-gang",
        "elements": ["chickens", "barn"],
    })
    wizard.save_step_value("art-style", ["watercolor"])
    return wizard


def detail_paths(error: ValidationError):
    return [item["path"] for item in error.details]


class TestStepPolicies:
    """Each step is checked only when advancing past it."""

    def test_appearance_requires_a_color(self, wizard):
        with pytest.raises(ValidationError) as exc_info:
            wizard.advance("appearance")
        assert detail_paths(exc_info.value) == ["appearance"]

    def test_appearance_allows_at_most_three(self, wizard):
        wizard.save_step_value("appearance", ["a", "b", "c", "d"])
        with pytest.raises(ValidationError):
            wizard.advance("appearance")

    def test_appearance_advances_to_personality(self, wizard):
        wizard.save_step_value("appearance", ["Ruby Red"])
        assert wizard.advance("appearance") == "personality"

    def test_personality_requires_value(self, wizard):
        wizard.save_step_value("personality", "   ")
        with pytest.raises(ValidationError) as exc_info:
            wizard.advance("personality")
        assert detail_paths(exc_info.value) == ["personality"]

    def test_story_names_every_missing_field(self, wizard):
        wizard.save_step_value("story", {"theme": "friendship", "antagonist": "", "elements": []})
        with pytest.raises(ValidationError) as exc_info:
            wizard.advance("story")
        assert detail_paths(exc_info.value) == ["story.antagonist", "story.elements"]

    def test_art_style_bounds(self, wizard):
        with pytest.raises(ValidationError):
            wizard.advance("art-style")
        wizard.save_step_value("art-style", ["watercolor", "pop-art", "storybook"])
        assert wizard.advance("art-style") == "review"

    def test_review_checks_all_steps(self, complete_wizard):
        assert complete_wizard.advance("review") is None

    def test_review_reports_incomplete_steps(self, wizard):
        wizard.save_step_value("appearance", ["Ruby Red"])
        with pytest.raises(ValidationError) as exc_info:
            wizard.advance("review")
        paths = detail_paths(exc_info.value)
        assert "appearance" not in paths
        assert "personality" in paths
        assert "art-style" in paths

    def test_unknown_step(self, wizard):
        with pytest.raises(ValidationError):
            wizard.advance("colors")
        with pytest.raises(ValidationError):
            wizard.save_step_value("review", "x")


class TestDraftPersistence:

    def test_invalid_values_are_saved_as_is(self, wizard):
        draft = wizard.save_step_value("appearance", ["a", "b", "c", "d"])
        assert draft["appearance"] == ["a", "b", "c", "d"]

    def test_load_draft_fills_empty_steps(self, wizard):
        draft = wizard.load_draft()
        assert draft == {
            "appearance": [],
            "personality": "",
            "story": {"theme": "", "antagonist": "", "elements": []},
            "art-style": [],
        }

    def test_draft_survives_new_controller(self):
        store = MemoryDraftStore()
        WizardController(store).save_step_value("personality", "Sweet and Gentle")
        assert WizardController(store).load_draft()["personality"] == "Sweet and Gentle"

    def test_clear(self, complete_wizard):
        complete_wizard.clear()
        assert complete_wizard.load_draft()["appearance"] == []


class TestNormalizeConfiguration:

    def test_fills_every_default(self):
        config = normalize_configuration(
            {
                "protagonist": {"personality": "Brave"},
                "antagonist": {"type": "squirrel-gang"},
                "theme": "courage",
                "artStyle": {"style": "watercolor"},
            },
            colors=["Ruby Red", "Aurora Lights"],
        )
        assert config["protagonist"]["name"] == ""
        assert config["protagonist"]["appearance"] == APPEARANCE_TEMPLATE.format(
            colors="ruby red, aurora lights"
        )
        assert config["antagonist"]["personality"] == "Organized squirrels trying to steal eggs and crops"
        assert config["mood"] == DEFAULT_MOOD
        assert config["artStyle"]["description"] == "Soft, flowing watercolor illustrations"
        assert config["farmElements"] == DEFAULT_FARM_ELEMENTS

    def test_legacy_squirrel_alias(self):
        config = normalize_configuration({"antagonist": {"type": "squirrel"}})
        assert config["antagonist"]["type"] == "squirrel-gang"

    def test_unknown_style_gets_generic_description(self):
        config = normalize_configuration({"artStyle": {"style": "crayon"}})
        assert config["artStyle"]["description"] == "Colorful and expressive"

    def test_never_invents_required_fields(self):
        config = normalize_configuration({})
        assert not config["protagonist"].get("personality")
        assert not config["antagonist"].get("type")
        assert "theme" not in config
        assert not config["artStyle"].get("style")

    def test_input_not_mutated(self):
        raw = {"antagonist": {"type": "squirrel"}}
        normalize_configuration(raw)
        assert raw == {"antagonist": {"type": "squirrel"}}

    def test_explicit_values_win(self):
        config = normalize_configuration({
            "mood": "Spooky",
            "farmElements": ["garden"],
            "antagonist": {"type": "dark-wizard", "personality": "Grumpy"},
        })
        assert config["mood"] == "Spooky"
        assert config["farmElements"] == ["garden"]
        assert config["antagonist"]["personality"] == "Grumpy"


class TestFinalize:

    def test_complete_draft(self, complete_wizard):
        params = complete_wizard.finalize()
        assert isinstance(params, StoryParams)
        assert params.protagonist.personality == "Brave and Adventurous"
        assert "neon pink & purple" in params.protagonist.appearance
        assert params.antagonist.type == "squirrel-gang"
        assert params.theme == "friendship"
        assert params.art_style.style == "watercolor"
        assert params.farm_elements == ["chickens", "barn"]
        assert params.mood == DEFAULT_MOOD

    def test_missing_antagonist_is_not_invented(self, complete_wizard):
        complete_wizard.save_step_value("story", {"theme": "friendship", "antagonist": "", "elements": []})
        with pytest.raises(ValidationError) as exc_info:
            complete_wizard.finalize()
        assert detail_paths(exc_info.value) == ["antagonist.type"]

    def test_empty_draft_lists_all_required_fields(self, wizard):
        with pytest.raises(ValidationError) as exc_info:
            wizard.finalize()
        assert detail_paths(exc_info.value) == [
            "protagonist.personality",
            "antagonist.type",
            "theme",
            "artStyle.style",
        ]

    def test_unknown_antagonist_rejected(self, complete_wizard):
        complete_wizard.save_step_value("story", {
            "theme": "friendship", "antagonist": "dragon", "elements": ["barn"],
        })
        with pytest.raises(ValidationError):
            complete_wizard.finalize()

    def test_legacy_antagonist_accepted(self, complete_wizard):
        complete_wizard.save_step_value("story", {
            "theme": "friendship", "antagonist": "squirrel", "elements": ["barn"],
        })
        assert complete_wizard.finalize().antagonist.type == "squirrel-gang"

    def test_multiple_styles_use_first_and_join_descriptions(self, complete_wizard):
        complete_wizard.save_step_value("art-style", ["watercolor", "pop-art"])
        params = complete_wizard.finalize()
        assert params.art_style.style == "watercolor"
        assert params.art_style.description == (
            "Soft, flowing watercolor illustrations; Bold, vibrant comic book style"
        )

    def test_missing_elements_get_defaults(self, complete_wizard):
        complete_wizard.save_step_value("story", {
            "theme": "courage", "antagonist": "dark-wizard", "elements": [],
        })
        assert complete_wizard.finalize().farm_elements == DEFAULT_FARM_ELEMENTS
