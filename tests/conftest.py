import pytest

from koesynth.acceleration import SupportedDevices
from fakes import FakeSessionFactory, write_vvm


@pytest.fixture
def cpu_devices():
    return SupportedDevices(cpu=True, cuda=False, dml=False)


@pytest.fixture
def session_factory():
    return FakeSessionFactory()


@pytest.fixture
def model_dir(tmp_path):
    directory = tmp_path / "models"
    directory.mkdir()
    write_vvm(directory, "sample", [("uuid-a", "Alice", [("normal", 0), ("happy", 1)])])
    write_vvm(directory, "other", [("uuid-b", "Bob", [("normal", 2)])], inner_ids={2: 0})
    return directory
