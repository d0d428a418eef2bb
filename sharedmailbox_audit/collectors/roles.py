"""
Role Member Collector
Every user holding at least one activated directory role.
"""

from __future__ import annotations

import logging

from .base import BaseCollector
from ..models import DirectoryRole, Principal, RoleMember

logger = logging.getLogger("sharedmailbox_audit.collectors.roles")


class RoleMemberCollector(BaseCollector):
    name = "adminroles"
    description = "Members of activated directory roles"
    permission = "RoleManagement.Read.Directory"

    async def _collect(self) -> list[Principal]:
        roles = [
            DirectoryRole.from_payload(r)
            for r in await self.graph.get_all_pages("directoryRoles", skip_top=True)
        ]
        logger.info(f"Fetched {len(roles)} directory roles")

        # upn -> (first-seen member, role names); dict keeps first-seen order
        seen: dict[str, tuple[RoleMember, list[str]]] = {}
        for role in roles:
            members = await self.graph.get_all_pages(
                f"directoryRoles/{role.id}/members",
                params={"$select": "id,displayName,userPrincipalName"},
                skip_top=True,  # directoryRoles/*/members does not support $top
            )
            logger.debug(f"Role {role.display_name} ({role.id}): {len(members)} members")
            for payload in members:
                member = RoleMember.from_payload(payload)
                if not member.is_user:
                    logger.debug(
                        f"Skipping non-user member {member.id} ({member.odata_type}) "
                        f"of role {role.display_name}"
                    )
                    continue
                key = member.user_principal_name.lower()
                if key not in seen:
                    seen[key] = (member, [])
                role_names = seen[key][1]
                if role.display_name not in role_names:
                    role_names.append(role.display_name)

        return [
            Principal(
                user_principal_name=member.user_principal_name,
                order=order,
                object_id=member.id,
                display_name=member.display_name,
                roles=tuple(role_names),
            )
            for order, (member, role_names) in enumerate(seen.values())
        ]
