import pytest
import torch

from tests.helpers import FakeVideoSource, StubModel, TinyClassifier, script_to_bytes


@pytest.fixture
def model_bytes():
    """Factory: serialized TinyClassifier with the given class count."""
    def make(num_classes: int = 5) -> bytes:
        torch.manual_seed(0)
        return script_to_bytes(TinyClassifier(num_classes))
    return make


@pytest.fixture
def asset_dir(tmp_path, model_bytes):
    d = tmp_path / "assets" / "model"
    d.mkdir(parents=True)
    (d / "classifier.ptl").write_bytes(model_bytes(5))
    return d


@pytest.fixture
def stub_model():
    return StubModel()


@pytest.fixture
def fake_video():
    return FakeVideoSource
