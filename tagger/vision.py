# Copyright (C) 2022-2026, François-Guillaume Fernandez.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

import io
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import numpy as np
import onnxruntime
from huggingface_hub import hf_hub_download
from PIL import Image, UnidentifiedImageError

from tagger.config import Settings

__all__ = [
    "Classifier",
    "InferenceError",
    "ModelHandle",
    "ModelLoadError",
    "Prediction",
    "PreprocessingError",
    "check_preprocessing_cfg",
    "load_classifier",
    "rank_predictions",
    "resolve_model_files",
]

logger = logging.getLogger("uvicorn.warning")


class ModelLoadError(RuntimeError):
    pass


class PreprocessingError(RuntimeError):
    pass


class InferenceError(RuntimeError):
    pass


class Prediction(NamedTuple):
    class_id: int
    probability: np.float32


def rank_predictions(probs: np.ndarray) -> List[Prediction]:
    """Ranks every class by decreasing probability

    Args:
        probs: probabilities of each class, of shape (N,)

    Returns:
        one prediction per class, the most likely first (ties resolved by lowest class index)
    """
    probs = np.asarray(probs, dtype=np.float32)
    order = np.argsort(-probs, kind="stable")
    return [Prediction(int(idx), probs[idx]) for idx in order]


def decode_image(img_data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(img_data))


def preprocess_image(pil_img: Image.Image, cfg: Dict[str, Any]) -> np.ndarray:
    """Preprocess an image for inference

    Args:
        pil_img: a valid pillow image
        cfg: model configuration with "input_shape", "mean" & "std" entries

    Returns:
        the resized and normalized image of shape (1, C, H, W)
    """
    # Resizing (PIL takes (W, H) order for resizing)
    img = pil_img.convert("RGB").resize(tuple(cfg["input_shape"][-2:][::-1]), Image.BILINEAR)
    # (H, W, C) --> (C, H, W)
    img = np.asarray(img).transpose((2, 0, 1)).astype(np.float32) / 255
    # Normalization
    img -= np.array(cfg["mean"], dtype=np.float32)[:, None, None]
    img /= np.array(cfg["std"], dtype=np.float32)[:, None, None]

    return img[None, ...]


def check_preprocessing_cfg(cfg: Any) -> None:
    """Verifies that a preprocessing configuration can be used by `preprocess_image`

    Args:
        cfg: the parsed model configuration

    Raises:
        ValueError: if "input_shape", "mean" or "std" is missing or malformed
    """
    if not isinstance(cfg, dict):
        raise ValueError("the preprocessing config should be a mapping")
    shape = cfg.get("input_shape")
    if (
        not isinstance(shape, (list, tuple))
        or len(shape) < 2
        or not all(isinstance(v, int) and not isinstance(v, bool) and v > 0 for v in shape)
    ):
        raise ValueError("'input_shape' should be a list of positive integers ending with height & width")
    # Images are converted to RGB
    if len(shape) >= 3 and shape[-3] != 3:
        raise ValueError(f"expected 3 input channels, received {shape[-3]}")
    for key in ("mean", "std"):
        values = cfg.get(key)
        if (
            not isinstance(values, (list, tuple))
            or len(values) != 3
            or not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values)
        ):
            raise ValueError(f"'{key}' should hold one number per RGB channel")
    if any(v == 0 for v in cfg["std"]):
        raise ValueError("'std' values cannot be zero")


class Classifier:
    """Binds an inference session to the named input & output tensors of a classification graph

    Args:
        session: an inference session (e.g. `onnxruntime.InferenceSession`)
        input_name: name of the input tensor
        output_name: name of the output tensor holding class probabilities
        input_mode: "encoded" to feed the raw file bytes as a string scalar (the graph decodes the image itself),
            "decoded" to feed a normalized float32 tensor
        cfg: preprocessing configuration, required by the "decoded" mode
    """

    def __init__(
        self,
        session: Any,
        input_name: str = "input_1",
        output_name: str = "probs",
        input_mode: str = "encoded",
        cfg: Optional[Dict[str, Any]] = None,
    ) -> None:
        if input_mode not in {"encoded", "decoded"}:
            raise ValueError(f"unsupported input mode: {input_mode}")
        if input_mode == "decoded":
            if cfg is None:
                raise ValueError("the 'decoded' input mode requires a preprocessing configuration")
            check_preprocessing_cfg(cfg)
        self.session = session
        self.input_name = input_name
        self.output_name = output_name
        self.input_mode = input_mode
        self.cfg = cfg

    def build_input(self, img_data: bytes) -> np.ndarray:
        if len(img_data) == 0:
            raise PreprocessingError("empty image payload")
        if self.input_mode == "encoded":
            return np.array(img_data, dtype=object)
        try:
            return preprocess_image(decode_image(img_data), self.cfg)  # type: ignore[arg-type]
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise PreprocessingError("unable to decode the image") from e

    def predict(self, img_data: bytes) -> np.ndarray:
        """Runs the graph on a single image

        Args:
            img_data: the encoded image file content

        Returns:
            the class probabilities, of shape (N,)
        """
        ort_input = {self.input_name: self.build_input(img_data)}

        # Inference
        try:
            ort_out = self.session.run([self.output_name], ort_input)
        except Exception as e:
            raise InferenceError(f"unable to run the '{self.output_name}' tensor") from e

        probs = np.asarray(ort_out[0], dtype=np.float32)
        # Single image batch
        if probs.ndim != 2 or probs.shape[0] != 1 or probs.shape[1] == 0:
            raise InferenceError(f"unexpected output shape: {probs.shape}")
        if not np.all(np.isfinite(probs)):
            raise InferenceError("non-finite class probabilities")

        return probs[0]


def resolve_model_files(settings: Settings) -> Tuple[Path, Optional[Path]]:
    """Locates the model artifact & its optional preprocessing config"""
    if settings.MODEL_HUB_REPO:
        try:
            model_path = Path(hf_hub_download(settings.MODEL_HUB_REPO, filename="model.onnx"))
            cfg_path = None
            if settings.INPUT_MODE == "decoded":
                cfg_path = Path(hf_hub_download(settings.MODEL_HUB_REPO, filename="config.json"))
        except Exception as e:
            raise ModelLoadError(f"unable to download the model from {settings.MODEL_HUB_REPO}") from e
        return model_path, cfg_path

    path = Path(settings.MODEL_PATH)
    cfg_path = None
    if path.is_dir():
        model_path = path.joinpath("model.onnx")
        if path.joinpath("config.json").is_file():
            cfg_path = path.joinpath("config.json")
    else:
        model_path = path
    if not model_path.is_file():
        raise ModelLoadError(f"no model artifact found at {model_path}")

    return model_path, cfg_path


def load_classifier(settings: Settings) -> Classifier:
    model_path, cfg_path = resolve_model_files(settings)

    cfg = None
    if cfg_path is not None:
        try:
            with cfg_path.open("rb") as f:
                cfg = json.load(f)
        except (OSError, ValueError) as e:
            raise ModelLoadError(f"invalid model config: {cfg_path}") from e
    if settings.INPUT_MODE == "decoded" and cfg is None:
        raise ModelLoadError("the 'decoded' input mode requires a config.json next to the model")
    if settings.INPUT_MODE == "decoded":
        try:
            check_preprocessing_cfg(cfg)
        except ValueError as e:
            raise ModelLoadError(f"invalid model config: {e}") from e

    try:
        session = onnxruntime.InferenceSession(str(model_path), providers=["CPUExecutionProvider"])
    except Exception as e:
        raise ModelLoadError(f"unable to load the model from {model_path}") from e

    # The graph signature is a hard dependency
    if settings.MODEL_INPUT not in {node.name for node in session.get_inputs()}:
        raise ModelLoadError(f"the model has no input tensor named '{settings.MODEL_INPUT}'")
    if settings.MODEL_OUTPUT not in {node.name for node in session.get_outputs()}:
        raise ModelLoadError(f"the model has no output tensor named '{settings.MODEL_OUTPUT}'")

    return Classifier(session, settings.MODEL_INPUT, settings.MODEL_OUTPUT, settings.INPUT_MODE, cfg)


class ModelHandle:
    """Shared read-only access to the classifier, loaded at most once per process

    Args:
        settings: the service configuration
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._classifier: Optional[Classifier] = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._classifier is not None

    def load(self) -> Classifier:
        with self._lock:
            # Another thread may have loaded it while we were waiting
            if self._classifier is None:
                self._classifier = load_classifier(self.settings)
                logger.info(f"Model loading completed: {self.settings.MODEL_HUB_REPO or self.settings.MODEL_PATH}")
            return self._classifier

    def get(self) -> Classifier:
        if self._classifier is not None:
            return self._classifier
        return self.load()

    def set(self, classifier: Classifier) -> None:
        with self._lock:
            self._classifier = classifier
