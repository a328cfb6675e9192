"""Agent coordination surface.

Combines the task queue and the mailboxes of one colony behind a single
stateless facade, used by the CLI and by read-only pollers.
"""

from agentcolony.coordination.facade import CoordinationFacade, Snapshot

__all__ = [
    "CoordinationFacade",
    "Snapshot",
]
