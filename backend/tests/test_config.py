"""Settings parsing and validation."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from birdleague.config import Settings


class TestSettings:

    def test_log_level_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(PydanticValidationError):
            Settings(log_level="chatty")

    def test_cors_origins_list(self):
        settings = Settings(cors_origins="http://a.test, http://b.test,")
        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_volume_mount_path_sets_data_dir(self, monkeypatch):
        monkeypatch.delenv("DATA_DIR", raising=False)
        monkeypatch.setenv("RAILWAY_VOLUME_MOUNT_PATH", "/mnt/league")
        assert Settings().data_dir == "/mnt/league"

    def test_missing_admin_secret_reported(self):
        with pytest.raises(ValueError, match="ADMIN_SECRET"):
            Settings(admin_secret="").validate_required_for_production()
