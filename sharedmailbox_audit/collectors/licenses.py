"""
Licensed User Collector
Every user with at least one assigned license.
"""

from __future__ import annotations

import logging

from .base import BaseCollector
from ..models import DirectoryUser, Principal

logger = logging.getLogger("sharedmailbox_audit.collectors.licenses")


class LicensedUserCollector(BaseCollector):
    name = "licenses"
    description = "Users with one or more assigned licenses"
    permission = "User.Read.All"

    async def _collect(self) -> list[Principal]:
        users = [
            DirectoryUser.from_payload(u)
            for u in await self.graph.get_all_pages(
                "users",
                params={"$select": "id,displayName,userPrincipalName,assignedLicenses"},
            )
        ]
        licensed = [u for u in users if u.license_skus]
        logger.info(f"{len(licensed)} of {len(users)} users hold a license")

        return [
            Principal(
                user_principal_name=user.user_principal_name,
                order=order,
                object_id=user.id,
                display_name=user.display_name,
                licenses=user.license_skus,
            )
            for order, user in enumerate(licensed)
        ]
