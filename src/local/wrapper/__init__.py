"""
The Wrapper package.
Runs the game server as a child process and manages its lifecycle.

This package contains the central ServerSupervisor class and the workers it
starts for each server process: the stream relays, the input relay, the
process monitor and the termination hook.
"""
from .supervisor import ProcessExit, ServerSupervisor, SupervisorState
from .readiness import ReadinessDetector, ReadinessState

__all__ = ['ServerSupervisor', 'SupervisorState', 'ProcessExit', 'ReadinessDetector', 'ReadinessState']
