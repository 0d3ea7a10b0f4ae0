"""Health subsystem: probers, hysteresis tracker, status store, scheduler."""

from .probes import HttpProber, ProbeResult, Prober, Target, TcpProber
from .scheduler import Channel, HealthScheduler
from .store import StatusEntry, StatusStore
from .tracker import HysteresisTracker, Thresholds, TrackerState, Verdict, VerdictChange
