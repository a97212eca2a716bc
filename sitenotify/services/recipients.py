"""Recipient resolver - who gets notified about an activity."""
import logging
from typing import Dict, FrozenSet, List, Optional

from ..schemas.identity import UserType
from ..schemas.notification import Recipient
from .api_client import BackendClient

logger = logging.getLogger(__name__)

# Actor role -> roles that hear about it.
# Admin activity reaches peer admins only; staff are not notified of it.
FANOUT_RULES: Dict[UserType, FrozenSet[UserType]] = {
    UserType.STAFF: frozenset({UserType.ADMIN}),
    UserType.ADMIN: frozenset({UserType.ADMIN}),
    UserType.CUSTOMER: frozenset({UserType.ADMIN}),
}


class RecipientResolver:
    """Applies role-based fan-out to the users of a client."""

    def __init__(self, api: BackendClient):
        self._api = api

    async def resolve_recipients(
        self,
        client_id: str,
        acting_user_id: str,
        acting_role: UserType,
        project_id: Optional[str] = None,
    ) -> List[Recipient]:
        """Resolve the users to notify about an activity.

        The actor is never included. Resolution is scoped to ``client_id``
        only, even for staff assigned to several clients. An empty list is a
        normal outcome.

        Raises:
            BackendError: If the candidate list cannot be fetched
        """
        candidates = await self._api.get_recipients(client_id, project_id)
        return self.apply_rules(candidates, client_id, acting_user_id, acting_role)

    def apply_rules(
        self,
        candidates: List[Recipient],
        client_id: str,
        acting_user_id: str,
        acting_role: UserType,
    ) -> List[Recipient]:
        wanted = FANOUT_RULES.get(acting_role, frozenset())
        seen = set()
        recipients: List[Recipient] = []

        for candidate in candidates:
            if candidate.user_id == acting_user_id:
                continue
            if candidate.user_type not in wanted:
                continue
            if candidate.client_id and candidate.client_id != client_id:
                continue
            if candidate.user_id in seen:
                continue
            seen.add(candidate.user_id)
            recipients.append(candidate)

        logger.info(
            f"Resolved {len(recipients)} recipient(s) for {acting_role.value} activity "
            f"in client {client_id} ({len(candidates)} candidate(s))"
        )
        return recipients
