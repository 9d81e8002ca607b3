import io
from types import SimpleNamespace

import numpy as np
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from tagger.config import Settings
from tagger.main import create_app
from tagger.vision import Classifier


class MockSession:
    """Mimics the part of `onnxruntime.InferenceSession` used by the service"""

    def __init__(self, outputs=None, input_names=("input_1",), output_names=("probs",), error=None):
        self.outputs = np.array([[0.1, 0.7, 0.2]], dtype=np.float32) if outputs is None else outputs
        self.input_names = input_names
        self.output_names = output_names
        self.error = error
        self.calls = []

    def get_inputs(self):
        return [SimpleNamespace(name=name) for name in self.input_names]

    def get_outputs(self):
        return [SimpleNamespace(name=name) for name in self.output_names]

    def run(self, output_names, input_feed):
        self.calls.append((output_names, input_feed))
        if self.error is not None:
            raise self.error
        return [self.outputs]


@pytest.fixture(scope="session")
def mock_session_cls():
    return MockSession


@pytest.fixture(scope="session")
def mock_classification_image():
    img = Image.fromarray(np.full((16, 16, 3), 255, dtype=np.uint8))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(scope="function")
def test_settings(tmp_path):
    return Settings(UPLOAD_DIR=tmp_path.joinpath("uploads"), MODEL_PATH=tmp_path.joinpath("efficientnet"))


@pytest.fixture(scope="function")
def mock_session():
    return MockSession()


@pytest.fixture(scope="function")
def test_app(test_settings, mock_session):
    app = create_app(test_settings)
    app.state.model.set(Classifier(mock_session))
    return app


@pytest_asyncio.fixture(scope="function")
async def test_app_asyncio(test_app):
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test", follow_redirects=True) as ac:
        yield ac  # testing happens here
