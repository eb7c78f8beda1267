"""Process-wide registry of live recording sessions."""

from typing import TYPE_CHECKING
from uuid import UUID

from legal_common.logging import setup_logging

from exceptions import SessionAlreadyActiveError

if TYPE_CHECKING:
    from domain.relay_session import RelaySession

logger = setup_logging()


class SessionRegistry:
    """
    Maps audio deposition ids to their live relay session.

    Owned by the composition root and shared by every connection handler.
    Methods never await, so each mutation is atomic on the event loop.
    """

    def __init__(self):
        self._sessions: dict[UUID, "RelaySession"] = {}

    def register(self, deposition_id: UUID, session: "RelaySession") -> None:
        """
        Binds a session to a deposition.

        Raises:
            SessionAlreadyActiveError: If another session is bound to it.
        """
        if deposition_id in self._sessions:
            raise SessionAlreadyActiveError(deposition_id)
        self._sessions[deposition_id] = session
        logger.info(
            "Session registered",
            extra={"deposition_id": str(deposition_id), "active": len(self._sessions)},
        )

    def release(self, deposition_id: UUID, session: "RelaySession") -> bool:
        """
        Removes the binding if it still belongs to `session`.

        Returns:
            True if the binding was removed by this call.
        """
        if self._sessions.get(deposition_id) is not session:
            return False
        del self._sessions[deposition_id]
        logger.info(
            "Session released",
            extra={"deposition_id": str(deposition_id), "active": len(self._sessions)},
        )
        return True

    def get(self, deposition_id: UUID) -> "RelaySession | None":
        return self._sessions.get(deposition_id)

    def __contains__(self, deposition_id: object) -> bool:
        return deposition_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
