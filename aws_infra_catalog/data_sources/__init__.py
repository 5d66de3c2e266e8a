"""Data sources for fetching external data."""

from .launch_data import LaunchDataSource
from .parameter_client import ParameterSourceClient

__all__ = ["LaunchDataSource", "ParameterSourceClient"]
