import pytest

from unitreg import UnitRegistry


@pytest.fixture
def registry():
    return UnitRegistry()


@pytest.fixture
def speed_registry(registry):
    registry.add("km", "1000*m")
    registry.add("h", "3600*s")
    registry.add("kmh", "km*h^-1")
    return registry


@pytest.fixture
def unit_file(tmp_path):
    return tmp_path / "units.txt"
