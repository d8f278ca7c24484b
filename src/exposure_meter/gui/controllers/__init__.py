"""Controllers bridging the metering core and its Qt collaborators."""

from .metering_controller import LightSensor, MeteringController

__all__ = ["LightSensor", "MeteringController"]
