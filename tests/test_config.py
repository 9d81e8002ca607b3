from pathlib import Path

import pytest
from pydantic import ValidationError

from tagger.config import Settings


def test_settings_defaults(monkeypatch):
    for key in ("PORT", "UPLOAD_DIR", "MODEL_PATH", "MAX_UPLOAD_SIZE", "KEEP_UPLOADS", "INPUT_MODE"):
        monkeypatch.delenv(key, raising=False)
    settings = Settings()
    assert settings.PORT == 8080
    assert settings.UPLOAD_DIR == Path("uploads")
    assert settings.MODEL_PATH == Path("efficientnet")
    assert settings.MAX_UPLOAD_SIZE == 10 * 1024 * 1024
    assert settings.MODEL_INPUT == "input_1"
    assert settings.MODEL_OUTPUT == "probs"
    assert settings.INPUT_MODE == "encoded"
    assert not settings.KEEP_UPLOADS
    assert settings.MODEL_HUB_REPO is None


def test_settings_env(monkeypatch):
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("UPLOAD_DIR", "/tmp/tagger")
    monkeypatch.setenv("KEEP_UPLOADS", "true")
    monkeypatch.setenv("INPUT_MODE", "decoded")
    settings = Settings()
    assert settings.PORT == 9000
    assert settings.UPLOAD_DIR == Path("/tmp/tagger")
    assert settings.KEEP_UPLOADS
    assert settings.INPUT_MODE == "decoded"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"PORT": 0},
        {"PORT": 70000},
        {"MAX_UPLOAD_SIZE": 0},
        {"INPUT_MODE": "pixels"},
        {"MODEL_INPUT": " "},
        {"MODEL_OUTPUT": ""},
    ],
)
def test_settings_validation(kwargs):
    with pytest.raises(ValidationError):
        Settings(**kwargs)
