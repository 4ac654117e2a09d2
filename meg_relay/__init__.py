"""Relay MEG channel telemetry to actuator command lines."""

__version__ = "0.1.0"
