import pytest

from haxidraw.config import HAXIDRAW_VENDOR_ID, PlotterSettings, Workspace
from haxidraw.device import PortInfo
from haxidraw.transform import CoordinateTransform

PLOTTER = PortInfo(device="/dev/ttyACM0", vid=HAXIDRAW_VENDOR_ID, pid=10, description="Haxidraw")
OTHER = PortInfo(device="/dev/ttyUSB0", vid=0x0403, pid=0x6001, description="FT232R")


@pytest.fixture
def settings():
    return PlotterSettings()


@pytest.fixture
def identity():
    """Logical units equal millimetres on the default workspace."""
    ws = Workspace()
    return CoordinateTransform.from_ranges((0, ws.width_mm), (0, ws.height_mm), ws)
