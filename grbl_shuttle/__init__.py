"""Grbl Shuttle - USB shuttle/jog pendant for Grbl CNC controllers.

Turns a joystick-class shuttle device into step and shuttle jogging, axis
zeroing, and a touch-plate Z probe.
"""

__version__ = "1.0"
__author__ = "Bob Kolbasowski"

from .machine import GrblMachine
from .pendant import Pendant
from .scheduler import Scheduler
from .utils import PendantConfig

__all__ = [
    "GrblMachine",
    "Pendant",
    "PendantConfig",
    "Scheduler",
]
