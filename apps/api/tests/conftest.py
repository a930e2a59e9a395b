import pytest

from config import settings


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep cache files and credentials out of the developer's environment."""
    monkeypatch.setattr(settings, "VIDALYTICS_API_TOKEN", "test-token")
    monkeypatch.setattr(settings, "CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    monkeypatch.setattr(settings, "STATS_BATCH_DELAY_SECONDS", 0.0)
    yield
