"""Integration tests for stored survey configurations and the survey catalog."""

import pytest

from assessment_engine.models.configuration import SurveyConfiguration
from assessment_engine.services.survey_catalog import SurveyCatalog
from assessment_engine.services.survey_configuration import (
    ConfigurationNotFoundError,
    SurveyConfigurationService,
)
from assessment_engine.services.survey_loader import SurveyNotFoundError
from assessment_engine.services.survey_store import SurveyDefinitionStore


def retitled(survey, title: str):
    return survey.model_copy(update={"title": title})


class TestSurveyConfigurationService:
    """Tests for SurveyConfigurationService."""

    def test_resolve_falls_back_to_yaml(self, db_session, survey_loader, leadership_survey):
        service = SurveyConfigurationService(db_session, survey_loader)
        assert service.resolve_survey("leadership_assessment") == leadership_survey

    def test_stored_configuration_takes_precedence(self, db_session, survey_loader, leadership_survey):
        service = SurveyConfigurationService(db_session, survey_loader)
        service.save_survey(retitled(leadership_survey, "Edited"), "leadership_assessment", created_by="admin")

        resolved = service.resolve_survey("leadership_assessment")
        assert resolved.title == "Edited"
        assert resolved.get_question("purpose_2").max_selections == 3

    def test_save_deactivates_previous(self, db_session, survey_loader, leadership_survey):
        service = SurveyConfigurationService(db_session, survey_loader)
        first = service.save_survey(retitled(leadership_survey, "One"), "leadership_assessment")
        second = service.save_survey(retitled(leadership_survey, "Two"), "leadership_assessment")

        history = service.history("leadership_assessment")
        assert [record.id for record in history] == [second.id, first.id]
        assert [record.is_active for record in history] == [True, False]

    def test_restore_copies_into_new_active_row(self, db_session, survey_loader, leadership_survey):
        service = SurveyConfigurationService(db_session, survey_loader)
        first = service.save_survey(retitled(leadership_survey, "One"), "leadership_assessment")
        service.save_survey(retitled(leadership_survey, "Two"), "leadership_assessment")

        restored = service.restore(first.id)

        assert restored.id != first.id
        assert service.resolve_survey("leadership_assessment").title == "One"
        assert len(service.history("leadership_assessment")) == 3

    def test_restore_missing(self, db_session, survey_loader):
        service = SurveyConfigurationService(db_session, survey_loader)
        with pytest.raises(ConfigurationNotFoundError):
            service.restore(999)

    def test_invalid_stored_configuration_ignored(self, db_session, survey_loader, leadership_survey):
        """Test a stored definition that no longer validates falls back to YAML."""
        db_session.add(SurveyConfiguration(
            survey_type="leadership_assessment", configuration={"title": "broken"}, is_active=True
        ))
        db_session.commit()

        service = SurveyConfigurationService(db_session, survey_loader)
        assert service.get_active_survey("leadership_assessment") is None
        assert service.resolve_survey("leadership_assessment") == leadership_survey

    def test_publish_notifies_store(self, db_session, survey_loader):
        service = SurveyConfigurationService(db_session, survey_loader)
        store = SurveyDefinitionStore("leadership_assessment")
        seen = []
        store.subscribe(seen.append)

        survey = service.publish(store)

        assert store.get_snapshot() is survey
        assert seen == [survey]


class TestSurveyCatalog:
    """Tests for SurveyCatalog."""

    def test_registry_follows_edits(self, db_session, survey_loader, leadership_survey):
        """Test saving a new definition rebuilds the registry."""
        catalog = SurveyCatalog(survey_loader)
        registry = catalog.registry("leadership_assessment", db_session)
        assert "sentiment_1" in registry

        edited = leadership_survey.model_dump(mode="json", by_alias=True, exclude_none=True)
        edited["sections"][1]["questions"][0]["question"] = "Describe your style today"
        service = SurveyConfigurationService(db_session, survey_loader)
        service.save_survey(type(leadership_survey).model_validate(edited), "leadership_assessment")
        catalog.refresh("leadership_assessment", db_session)

        registry = catalog.registry("leadership_assessment", db_session)
        assert registry.get("sentiment_1").question_text == "Describe your style today"

    def test_store_is_reused(self, db_session, survey_loader):
        catalog = SurveyCatalog(survey_loader)
        assert catalog.store("leadership_assessment", db_session) is catalog.store(
            "leadership_assessment", db_session
        )

    def test_unknown_survey(self, db_session, survey_loader):
        catalog = SurveyCatalog(survey_loader)
        with pytest.raises(SurveyNotFoundError):
            catalog.survey("missing_survey", db_session)
