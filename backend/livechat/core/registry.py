# backend/livechat/core/registry.py
import logging
from typing import Dict, Set

from .domain import AGENT_ROLES, Role

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Live transport handles per participant.

    A handle is anything with `participant_id`, `role` and `push(event, data)`.
    Connections come and go freely; nothing here touches room state.
    """

    def __init__(self):
        self._by_participant: Dict[str, Set] = {}
        self._roles: Dict[str, Role] = {}

    def register(self, handle) -> None:
        self._by_participant.setdefault(handle.participant_id, set()).add(handle)
        self._roles[handle.participant_id] = handle.role
        logger.debug("Registered %s handle for %s", handle.role.value, handle.participant_id)

    def unregister(self, handle) -> None:
        handles = self._by_participant.get(handle.participant_id)
        if not handles or handle not in handles:
            return
        handles.discard(handle)
        if not handles:
            del self._by_participant[handle.participant_id]
            self._roles.pop(handle.participant_id, None)
        logger.debug("Unregistered handle for %s", handle.participant_id)

    def handles_for(self, participant_id) -> Set:
        if participant_id is None:
            return set()
        return set(self._by_participant.get(participant_id, ()))

    def handles_for_role(self, *roles: Role) -> Set:
        result = set()
        for participant_id, role in self._roles.items():
            if role in roles:
                result |= self._by_participant.get(participant_id, set())
        return result

    def all_agent_handles(self) -> Set:
        return self.handles_for_role(*AGENT_ROLES)

    def is_online(self, participant_id) -> bool:
        return bool(self._by_participant.get(participant_id))

    def __len__(self) -> int:
        return sum(len(h) for h in self._by_participant.values())
