# Copyright (C) 2022-2026, François-Guillaume Fernandez.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

import logging
from contextlib import ExitStack
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from tagger.schemas import UploadOut
from tagger.storage import saved_upload
from tagger.vision import InferenceError, ModelLoadError, PreprocessingError, rank_predictions

__all__ = ["router"]

logger = logging.getLogger("uvicorn.warning")

SUCCESS_MESSAGE = "Image uploaded and processed successfully"
FORM_ERROR = "Unable to process the uploaded image"
MISSING_FILE_ERROR = "Error retrieving the image file"
SAVE_ERROR = "Error saving the uploaded image"
MODEL_ERROR = "Failed to load the EfficientNet model"
PREPROCESSING_ERROR = "Error loading the image for prediction"
INFERENCE_ERROR = "Error performing the image prediction"

router = APIRouter()


async def get_image(request: Request) -> AsyncIterator[UploadFile]:
    """Parses the multipart form and extracts its "image" file"""
    try:
        form = await request.form()
    except (StarletteHTTPException, MultiPartException, ValueError) as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, FORM_ERROR) from e
    try:
        image = form.get("image")
        if not isinstance(image, UploadFile):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, MISSING_FILE_ERROR)
        if image.size is not None and image.size > request.app.state.settings.MAX_UPLOAD_SIZE:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, FORM_ERROR)
        yield image
    finally:
        await form.close()


@router.post("/upload", status_code=status.HTTP_200_OK, summary="Upload & classify an image")
def upload_image(request: Request, image: UploadFile = Depends(get_image)) -> UploadOut:
    """Saves the uploaded image and runs the classification model on it"""
    settings = request.app.state.settings

    with ExitStack() as stack:
        try:
            file_path = stack.enter_context(
                saved_upload(image.file, image.filename, settings.UPLOAD_DIR, keep=settings.KEEP_UPLOADS)
            )
        except OSError as e:
            logger.warning(f"Unable to save '{image.filename}': {e}")
            raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, SAVE_ERROR) from e

        try:
            classifier = request.app.state.model.get()
        except ModelLoadError as e:
            logger.warning(f"Model unavailable: {e}")
            raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, MODEL_ERROR) from e

        try:
            probs = classifier.predict(file_path.read_bytes())
        except (OSError, PreprocessingError) as e:
            logger.warning(f"Unable to prepare {file_path.name} for inference: {e}")
            raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, PREPROCESSING_ERROR) from e
        except InferenceError as e:
            logger.warning(f"Inference failed on {file_path.name}: {e}")
            raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, INFERENCE_ERROR) from e

        top_prediction = rank_predictions(probs)[0]

        tags = request.app.state.tag_assigner.assign(file_path, top_prediction)
        if len(tags) > 0:
            logger.info(f"Tags assigned to {file_path.name}: {', '.join(tags)}")

    return UploadOut(
        message=SUCCESS_MESSAGE,
        prediction=f"Class {top_prediction.class_id}",
        # Shortest float32 representation (0.7 rather than 0.699999988079071)
        probability=float(str(top_prediction.probability)),
    )
