"""Unit tests for answer formatting."""

from assessment_engine.services.answer_formatter import format_answer


class TestFormatAnswer:
    """Tests for format_answer()."""

    def test_scale_value_maps_to_label(self, small_registry):
        """Test a 1-based scale value is shown as its label."""
        assert format_answer(small_registry, "energy", 2) == "Mid"
        assert format_answer(small_registry, "energy", "3") == "High"
        assert format_answer(small_registry, "energy", 1.0) == "Low"

    def test_scale_value_out_of_range(self, small_registry):
        assert format_answer(small_registry, "energy", 7) == "Rating: 7"

    def test_grid_prompt_rating(self, small_registry):
        """Test grid prompt answers show the shared scale size."""
        assert format_answer(small_registry, "confidence_1", "4") == "Rating: 4/5"

    def test_checkbox_list_joined(self, small_registry):
        assert format_answer(small_registry, "values", ["Growth", "Impact"]) == "Growth, Impact"

    def test_missing_value(self, small_registry):
        assert format_answer(small_registry, "notes", None) == ""

    def test_text_passthrough(self, small_registry):
        assert format_answer(small_registry, "notes", "All good") == "All good"

    def test_dict_and_bool(self, small_registry):
        """Test structured values from legacy submissions."""
        assert format_answer(small_registry, "legacy", {"name": "Ann", "role": "Lead"}) == "name: Ann; role: Lead"
        assert format_answer(small_registry, "legacy", True) == "Yes"

    def test_unknown_question_stringified(self, small_registry):
        assert format_answer(small_registry, "retired", 3) == "3"

    def test_shipped_scale_question(self, leadership_registry):
        """Test the shipped purpose rating uses its own labels."""
        entry = leadership_registry.get("purpose_5")
        assert format_answer(leadership_registry, "purpose_5", 1) == entry.scale_labels[0]
