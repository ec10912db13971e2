"""Unit tests for survey loader service.

Tests YAML loading, caching, and validation.
"""

import tempfile
from pathlib import Path

import pytest

from assessment_engine.services.survey_loader import (
    SurveyLoader,
    SurveyNotFoundError,
    SurveyValidationError,
    get_survey_loader,
    parse_survey,
)
from assessment_engine.schemas.survey import Survey


VALID_SURVEY_YAML = """
title: Test Survey
description: A test survey
sections:
  - title: Intro
    type: instructions
    content: Hello
  - title: Questions
    type: questions
    questions:
      - id: mood
        type: scale
        question: How do you feel?
        scaleLabels: [Bad, OK, Good]
"""


class TestSurveyLoader:
    """Tests for SurveyLoader class."""

    @pytest.fixture
    def temp_surveys_dir(self):
        """Create temporary directory for test surveys."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    def write_survey(self, directory: str, name: str, content: str) -> None:
        Path(directory, f"{name}.yaml").write_text(content, encoding="utf-8")

    def test_load_valid_survey(self, temp_surveys_dir):
        """Test loading a valid survey file."""
        self.write_survey(temp_surveys_dir, "test_survey", VALID_SURVEY_YAML)
        loader = SurveyLoader(temp_surveys_dir)

        survey = loader.load_survey("test_survey")

        assert isinstance(survey, Survey)
        assert survey.title == "Test Survey"
        assert survey.get_question("mood").scale_labels == ["Bad", "OK", "Good"]

    def test_load_missing_survey(self, temp_surveys_dir):
        """Test loading a survey type with no file."""
        loader = SurveyLoader(temp_surveys_dir)
        with pytest.raises(SurveyNotFoundError):
            loader.load_survey("nope")

    def test_load_invalid_yaml(self, temp_surveys_dir):
        """Test malformed YAML raises a validation error."""
        self.write_survey(temp_surveys_dir, "broken", "title: [unclosed\n")
        loader = SurveyLoader(temp_surveys_dir)
        with pytest.raises(SurveyValidationError) as exc_info:
            loader.load_survey("broken")
        assert "Invalid YAML" in str(exc_info.value)

    def test_load_schema_violation(self, temp_surveys_dir):
        """Test YAML that parses but fails the schema."""
        self.write_survey(temp_surveys_dir, "bad", "title: Bad\nsections: []\n")
        loader = SurveyLoader(temp_surveys_dir)
        with pytest.raises(SurveyValidationError):
            loader.load_survey("bad")

    def test_caching(self, temp_surveys_dir):
        """Test the same object is returned until the cache is cleared."""
        self.write_survey(temp_surveys_dir, "cached", VALID_SURVEY_YAML)
        loader = SurveyLoader(temp_surveys_dir)

        first = loader.load_survey("cached")
        assert loader.load_survey("cached") is first

        loader.clear_cache()
        assert loader.load_survey("cached") is not first

    def test_list_surveys(self, temp_surveys_dir):
        """Test listing survey types from the directory."""
        self.write_survey(temp_surveys_dir, "b_survey", VALID_SURVEY_YAML)
        self.write_survey(temp_surveys_dir, "a_survey", VALID_SURVEY_YAML)
        loader = SurveyLoader(temp_surveys_dir)

        assert loader.list_surveys() == ["a_survey", "b_survey"]

    def test_list_surveys_missing_directory(self):
        """Test a missing directory lists nothing."""
        loader = SurveyLoader("/nonexistent/surveys")
        assert loader.list_surveys() == []

    def test_shipped_survey_loads(self, survey_loader):
        """Test the shipped leadership assessment validates."""
        survey = survey_loader.load_survey("leadership_assessment")
        assert survey.sections[0].is_instructions
        assert survey.grid_scale_points == 6


class TestParseSurvey:
    """Tests for parse_survey()."""

    def test_rejects_non_mapping(self):
        """Test a list is not a survey."""
        with pytest.raises(SurveyValidationError):
            parse_survey(["not", "a", "survey"])

    def test_error_names_source(self):
        """Test the error message names where the data came from."""
        with pytest.raises(SurveyValidationError) as exc_info:
            parse_survey({"title": "x"}, "stored#7")
        assert "stored#7" in str(exc_info.value)


def test_get_survey_loader_singleton():
    """Test get_survey_loader returns the same instance."""
    assert get_survey_loader() is get_survey_loader()
