"""Agent loop orchestration.

Provides AgentLoop and AgentRun (the round state machine and its event
stream) and AgentLoopConfig.
"""

from termagent.orchestrator.config import AgentLoopConfig, LoopPhase
from termagent.orchestrator.loop import AgentLoop, AgentRun

__all__ = [
    "AgentLoop",
    "AgentLoopConfig",
    "AgentRun",
    "LoopPhase",
]
