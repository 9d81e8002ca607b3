# Copyright (C) 2022-2026, François-Guillaume Fernandez.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tagger.version import __version__

__all__ = ["Settings", "settings"]


class Settings(BaseSettings):
    """Service configuration, overridable through environment variables"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", protected_namespaces=())

    PROJECT_NAME: str = "Tagger API"
    PROJECT_DESCRIPTION: str = "Image upload & classification service"
    VERSION: str = __version__
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = Field(8080, ge=1, le=65535)

    # Uploads
    UPLOAD_DIR: Path = Path("uploads")
    KEEP_UPLOADS: bool = False
    MAX_UPLOAD_SIZE: int = Field(10 << 20, gt=0)

    # Model
    MODEL_PATH: Path = Path("efficientnet")
    MODEL_HUB_REPO: Optional[str] = None
    MODEL_INPUT: str = "input_1"
    MODEL_OUTPUT: str = "probs"
    INPUT_MODE: Literal["encoded", "decoded"] = "encoded"

    @field_validator("MODEL_INPUT", "MODEL_OUTPUT")
    @classmethod
    def tensor_name_is_set(cls, v: str) -> str:
        if len(v.strip()) == 0:
            raise ValueError("tensor names cannot be empty")
        return v


settings = Settings()
