"""GNSS position model."""

from rtkclient.gnss.types import FixQuality, GNSSPosition

__all__ = ["FixQuality", "GNSSPosition"]
