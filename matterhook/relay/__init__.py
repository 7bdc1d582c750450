"""Relay pipeline: backoff, reconnect supervisor and wiring."""

from matterhook.relay.backoff import ExponentialBackoff
from matterhook.relay.loop import RelayLoop
from matterhook.relay.supervisor import ReconnectSupervisor, SupervisorState

__all__ = ["ExponentialBackoff", "RelayLoop", "ReconnectSupervisor", "SupervisorState"]
