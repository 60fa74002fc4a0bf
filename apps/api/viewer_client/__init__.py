"""Visitor-side link gate and slide analytics recorder."""

from .api import AccessClient
from .gate import GateState, LinkGate
from .recorder import ViewRecorder, classify_device
from .storage import TabStorage
