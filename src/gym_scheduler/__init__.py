"""Gym class scheduling, booking capacity and lifting-program tracker."""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("gym-scheduler")
except importlib.metadata.PackageNotFoundError:
    __version__ = "unknown"
