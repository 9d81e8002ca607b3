# Copyright (C) 2022-2026, François-Guillaume Fernandez.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

import shutil
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

__all__ = ["sanitize_suffix", "saved_upload"]


def sanitize_suffix(filename: Optional[str]) -> str:
    """Extracts a safe file extension from a client-supplied filename

    >>> sanitize_suffix("../../etc/Photo.JPG")
    '.jpg'

    Args:
        filename: the name sent by the client

    Returns:
        the lowercase extension (dot included), or an empty string if it is missing or suspicious
    """
    if not filename:
        return ""
    # Handle both path separators, clients are not necessarily POSIX
    suffix = Path(filename.replace("\\", "/")).suffix[1:].lower()
    if 0 < len(suffix) <= 10 and suffix.isascii() and suffix.isalnum():
        return f".{suffix}"
    return ""


@contextmanager
def saved_upload(
    fileobj: BinaryIO,
    filename: Optional[str],
    upload_dir: Union[str, Path],
    keep: bool = False,
) -> Iterator[Path]:
    """Persists an uploaded file under a generated name for the duration of the context

    Args:
        fileobj: the uploaded file stream
        filename: the client filename, only used for its extension
        upload_dir: the folder where uploads are written
        keep: whether the file should be retained on disk after the context exits

    Yields:
        the path of the written file
    """
    folder = Path(upload_dir)
    folder.mkdir(parents=True, exist_ok=True)
    file_path = folder.joinpath(f"{uuid.uuid4().hex}{sanitize_suffix(filename)}")

    try:
        with file_path.open("wb") as f:
            shutil.copyfileobj(fileobj, f)
    except OSError:
        file_path.unlink(missing_ok=True)
        raise

    try:
        yield file_path
    finally:
        if not keep:
            file_path.unlink(missing_ok=True)
