"""Unit tests for environment-driven settings."""

from pathlib import Path

from pydantic import ValidationError
import pytest

from counsel_search.config import Settings


@pytest.mark.unit
class TestSettings:
    """Tests for Settings."""

    def test_defaults_from_test_environment(self):
        settings = Settings()

        assert settings.database_path == Path("counsel_db.sqlite")
        assert settings.index_path == Path("searchIndex.json")
        assert settings.synonyms_path is None
        assert settings.index_batch_size == 1000
        assert settings.max_results == 100
        assert settings.expansion_threshold == 20
        assert settings.max_edit_distance == 2
        assert settings.max_corrections == 5
        assert settings.context_radius == 2
        assert settings.log_json is True

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("INDEX_PATH", str(tmp_path / "custom.json"))
        monkeypatch.setenv("MAX_RESULTS", "25")
        monkeypatch.setenv("LOG_JSON", "false")

        settings = Settings()

        assert settings.index_path == tmp_path / "custom.json"
        assert settings.max_results == 25
        assert settings.log_json is False

    def test_correction_budget_in_seconds(self, monkeypatch):
        assert Settings().correction_time_budget_seconds == pytest.approx(0.25)

        monkeypatch.setenv("CORRECTION_TIME_BUDGET_MS", "0")
        assert Settings().correction_time_budget_seconds is None

    def test_index_path_must_not_be_directory(self, monkeypatch, tmp_path):
        monkeypatch.setenv("INDEX_PATH", str(tmp_path))

        with pytest.raises(ValidationError, match="INDEX_PATH must point to a file"):
            Settings()

    @pytest.mark.parametrize(("name", "value"), [("MAX_RESULTS", "0"), ("INDEX_BATCH_SIZE", "-5")])
    def test_rejects_out_of_range_values(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ValidationError):
            Settings()
