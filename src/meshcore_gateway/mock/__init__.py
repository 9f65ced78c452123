"""Mock implementations for testing and development."""

from .connection import MockDeviceConnection

__all__ = ["MockDeviceConnection"]
