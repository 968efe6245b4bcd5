import pytest

from overlay_canvas.settings import load_settings


def test_defaults(monkeypatch):
    for name in ("ASSET_API_URL", "UPLOAD_API_URL", "OVERLAY_TARGET_WIDTH_FRACTION",
                 "OVERLAY_ALLOW_UPSCALE", "COMPOSE_DEBOUNCE_MS"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.target_width_fraction == 0.2
    assert settings.allow_upscale is False
    assert settings.upload_api_url == settings.asset_api_url


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("ASSET_API_URL", "https://assets.test")
    monkeypatch.setenv("OVERLAY_ALLOW_UPSCALE", "yes")
    monkeypatch.setenv("COMPOSE_DEBOUNCE_MS", "0")
    settings = load_settings()
    assert settings.upload_api_url == "https://assets.test"
    assert settings.allow_upscale is True
    assert settings.compose_debounce_ms == 0


@pytest.mark.parametrize("value", ["0", "1.5", "abc"])
def test_bad_width_fraction(monkeypatch, value):
    monkeypatch.setenv("OVERLAY_TARGET_WIDTH_FRACTION", value)
    with pytest.raises(RuntimeError):
        load_settings()
