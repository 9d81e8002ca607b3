# Copyright (C) 2022-2026, François-Guillaume Fernandez.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

from pydantic import BaseModel, Field


class UploadOut(BaseModel):
    """Top-1 classification result of an uploaded image"""

    message: str = Field(..., json_schema_extra={"example": "Image uploaded and processed successfully"})
    prediction: str = Field(..., pattern=r"^Class \d+$", json_schema_extra={"example": "Class 1"})
    probability: float = Field(..., json_schema_extra={"gte": 0, "lte": 1, "example": 0.7})
