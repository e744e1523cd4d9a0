"""
Tests for environment-driven exchanger settings
"""

import pytest

from loopback_oauth.settings import ExchangerSettings


class TestExchangerSettings:
    def test_defaults(self):
        settings = ExchangerSettings.from_env({})

        assert settings.port == 3000
        assert settings.path == "/callback"
        assert settings.host == ""
        assert settings.timeout is None
        assert settings.open_browser is True
        assert settings.validate() == []

    def test_from_env(self):
        settings = ExchangerSettings.from_env(
            {
                "LOOPBACK_OAUTH_PORT": "8085",
                "LOOPBACK_OAUTH_PATH": "oauth2/cb",
                "LOOPBACK_OAUTH_HOST": "127.0.0.1",
                "LOOPBACK_OAUTH_TIMEOUT": "90",
                "LOOPBACK_OAUTH_OPEN_BROWSER": "no",
            }
        )

        assert settings.to_dict() == {
            "port": 8085,
            "path": "oauth2/cb",
            "host": "127.0.0.1",
            "timeout": 90.0,
            "open_browser": False,
        }
        assert settings.validate() == []

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("LOOPBACK_OAUTH_PORT", "9000")

        assert ExchangerSettings.from_env().port == 9000

    def test_empty_values_are_ignored(self):
        settings = ExchangerSettings.from_env({"LOOPBACK_OAUTH_PORT": "", "LOOPBACK_OAUTH_PATH": ""})

        assert settings.port == 3000
        assert settings.path == "/callback"

    @pytest.mark.parametrize(
        "name,value,message",
        [
            ("LOOPBACK_OAUTH_PORT", "http", "must be an integer"),
            ("LOOPBACK_OAUTH_TIMEOUT", "soon", "must be a number"),
            ("LOOPBACK_OAUTH_OPEN_BROWSER", "maybe", "must be a boolean"),
        ],
    )
    def test_unparseable_values(self, name, value, message):
        settings = ExchangerSettings.from_env({name: value})

        errors = settings.validate()
        assert len(errors) == 1
        assert name in errors[0]
        assert message in errors[0]

    def test_validate_ranges(self):
        settings = ExchangerSettings(port=70000, timeout=0)

        errors = settings.validate()

        assert len(errors) == 2
        assert "between 0 and 65535" in errors[0]
        assert "must be positive" in errors[1]
