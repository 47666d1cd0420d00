"""Tests for shared pipeline schemas."""

import json

import pytest
from pydantic import ValidationError

from common.schemas import ContentKind, JobKey, TranslationJob, TranslationRequest


class TestJobKey:
    """Test job identity."""

    def test_series_string_form(self):
        key = JobKey(title_id="tt1", season=1, episode=3, target_language="pt")

        assert key.as_string() == "tt1:1:3:pt"
        assert str(key) == "tt1:1:3:pt"

    def test_movie_string_form(self):
        assert JobKey(title_id="tt1", target_language="pt").as_string() == "tt1:::pt"

    def test_keys_are_hashable_and_equal_by_value(self):
        a = JobKey(title_id="tt1", season=1, episode=3, target_language="pt")
        b = JobKey(title_id="tt1", season=1, episode=3, target_language="pt")

        assert a == b
        assert len({a, b}) == 1

    def test_keys_are_frozen(self):
        key = JobKey(title_id="tt1", target_language="pt")

        with pytest.raises(ValidationError):
            key.title_id = "tt2"


class TestTranslationJob:
    """Test job records."""

    def test_registry_record_excludes_credentials(self):
        job = TranslationJob(
            key=JobKey(title_id="tt1", target_language="pt"),
            provider="ChatGPT API",
            api_key="sk-secret",
        )

        record = json.loads(job.to_registry_record())

        assert "api_key" not in record
        assert record["provider"] == "ChatGPT API"
        assert "sk-secret" not in repr(job)


class TestTranslationRequest:
    """Test pipeline requests."""

    def test_key_and_job(self):
        request = TranslationRequest(
            title_id="tt1",
            kind=ContentKind.SERIES,
            season=2,
            episode=5,
            target_language="es",
            provider="Gemini API",
            api_key="k",
            model_name="gemini-1.5-pro",
        )

        job = request.to_job()

        assert request.key.as_string() == "tt1:2:5:es"
        assert job.key == request.key
        assert job.kind is ContentKind.SERIES
        assert job.api_key == "k"
        assert job.model_name == "gemini-1.5-pro"
