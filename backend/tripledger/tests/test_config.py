"""
Tests for application settings and attribute-based schemas.
"""
import pytest
from pydantic import ValidationError

from tripledger.core.config import Settings
from tripledger.schemas.trip import MemberResponse, TripResponse


class TestSettings:

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.DEFAULT_CURRENCY == "INR"
        assert settings.SPLIT_TOLERANCE_MINOR == 0
        assert settings.DATABASE_URL.startswith("sqlite")

    def test_cors_origins_from_comma_separated_string(self):
        settings = Settings(_env_file=None, CORS_ORIGINS="http://a.test, http://b.test,")
        assert settings.CORS_ORIGINS == ["http://a.test", "http://b.test"]

    def test_default_currency_upper_cased(self):
        assert Settings(_env_file=None, DEFAULT_CURRENCY=" usd ").DEFAULT_CURRENCY == "USD"

    def test_negative_tolerance_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, SPLIT_TOLERANCE_MINOR=-1)

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert Settings(_env_file=None).LOG_LEVEL == "DEBUG"


class TestResponsesFromRecords:

    def test_trip_response_from_store_record(self, store, trip):
        response = TripResponse.model_validate(trip)
        assert response.id == trip.id
        assert response.base_currency == "INR"

    def test_member_response_from_store_record(self, store, members):
        response = MemberResponse.model_validate(members[0])
        assert response.display_name == "A"
