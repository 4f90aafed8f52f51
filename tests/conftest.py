import pytest

from bdd_core.steps import default_registry, clear_steps, TOLERANT
from bdd_core.executor import default_recorder, default_container, default_dispatcher


@pytest.fixture(autouse=True)
def reset_state():
    """Isolate the module-level registry, recorder, container and events"""
    clear_steps()
    default_registry.whitespace = TOLERANT
    default_recorder.start()
    default_container.create({})

    yield

    default_container.clear()
    default_recorder.stop()
    default_dispatcher.clear()
    clear_steps()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point config discovery at a file that does not exist"""
    config_path = tmp_path / "missing" / "bdd-core.yaml"
    monkeypatch.setenv("BDD_CORE_CONFIG", str(config_path))
    return config_path
