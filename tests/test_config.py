"""
Configuration classes — environment selection and production defaults.
"""

from flask import Flask

from portfolio_insights.config import Config, config


class TestConfig:

    def test_environment_mapping(self):
        assert config["default"] is config["development"]
        assert config["testing"].TESTING is True
        assert config["testing"].RATELIMIT_ENABLED is False

    def test_production_loads_without_secret_key(self, monkeypatch):
        """Nothing signs sessions or tokens, so no secret is required."""
        monkeypatch.delenv("SECRET_KEY", raising=False)
        app = Flask("production-check")
        app.config.from_object(config["production"])
        assert app.config["DEBUG"] is False
        assert app.config["SECRET_KEY"] is None
        assert not hasattr(Config, "SECRET_KEY")

    def test_limiter_storage_comes_from_config(self, app):
        assert app.config["RATELIMIT_STORAGE_URI"] == Config.RATELIMIT_STORAGE_URI
