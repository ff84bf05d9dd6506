"""
app/domain/version_state.py

Transition table for the dataset version lifecycle.

    processing --batch-->     processing
    processing --finalize-->  active
    processing --abort-->     failed
    active     --deprecate--> deprecated

``abort`` on a version that is already terminal is accepted as a no-op;
every other action outside the table is rejected.
"""

from __future__ import annotations

import uuid

from app.domain.errors import InvalidVersionTransitionError
from db.models.irradiance_dataset_version import VersionStatus


class VersionAction:
    BATCH = "batch"
    FINALIZE = "finalize"
    ABORT = "abort"
    DEPRECATE = "deprecate"


_TRANSITIONS: dict[tuple[str, str], str] = {
    (VersionStatus.PROCESSING, VersionAction.BATCH): VersionStatus.PROCESSING,
    (VersionStatus.PROCESSING, VersionAction.FINALIZE): VersionStatus.ACTIVE,
    (VersionStatus.PROCESSING, VersionAction.ABORT): VersionStatus.FAILED,
    (VersionStatus.ACTIVE, VersionAction.DEPRECATE): VersionStatus.DEPRECATED,
}


class VersionStateMachine:
    """
    Resolves protocol actions against a version's current status.
    """

    def __init__(self, transitions: dict[tuple[str, str], str] | None = None) -> None:
        self._transitions = dict(transitions or _TRANSITIONS)

    def allowed_actions(self, status: str) -> list[str]:
        return [action for (source, action) in self._transitions if source == status]

    def is_noop(self, status: str, action: str) -> bool:
        return action == VersionAction.ABORT and status in VersionStatus.TERMINAL

    def next_status(self, *, version_id: uuid.UUID, status: str, action: str) -> str:
        """
        Return the status after ``action``, or the unchanged status for a no-op.

        Raises InvalidVersionTransitionError when the action is not allowed.
        """
        if self.is_noop(status, action):
            return status
        target = self._transitions.get((status, action))
        if target is None:
            raise InvalidVersionTransitionError(version_id=version_id, status=status, action=action)
        return target


DEFAULT_STATE_MACHINE = VersionStateMachine()
