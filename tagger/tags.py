# Copyright (C) 2022-2026, François-Guillaume Fernandez.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

from pathlib import Path
from typing import List

from tagger.vision import Prediction

__all__ = ["TagAssigner"]


class TagAssigner:
    """Assigns tags to an uploaded image from its top prediction.

    The base implementation assigns nothing, subclasses are expected to override `assign`.
    """

    def assign(self, upload_path: Path, prediction: Prediction) -> List[str]:
        return []
