from .base import BaseCollector
from .roles import RoleMemberCollector
from .licenses import LicensedUserCollector

COLLECTORS = {
    RoleMemberCollector.name: RoleMemberCollector,
    LicensedUserCollector.name: LicensedUserCollector,
}

__all__ = [
    "BaseCollector",
    "RoleMemberCollector",
    "LicensedUserCollector",
    "COLLECTORS",
]
