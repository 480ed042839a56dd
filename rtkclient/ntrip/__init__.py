"""NTRIP correction stream client."""

from rtkclient.ntrip.client import NTRIPClient
from rtkclient.ntrip.types import NTRIPFailure, NTRIPState, NTRIPStatus

__all__ = ["NTRIPClient", "NTRIPFailure", "NTRIPState", "NTRIPStatus"]
