"""Tenant context carried explicitly into every service call.

Services never read the tenant from ambient state: each function that touches
tenant-owned rows takes a ``TenantContext`` and filters on ``ctx.tenant_id``.
"""
from dataclasses import dataclass

from fastapi import Depends

from app.core.security import get_current_user
from app.db import models


@dataclass(frozen=True)
class TenantContext:
    tenant_id: str
    user_id: str
    role: str

    @property
    def is_manager(self) -> bool:
        return self.role in {models.UserRole.OWNER.value, models.UserRole.MANAGER.value}

    @classmethod
    def for_user(cls, user: models.User) -> "TenantContext":
        return cls(tenant_id=user.tenant_id, user_id=user.id, role=user.role)


def get_tenant_context(current_user: models.User = Depends(get_current_user)) -> TenantContext:
    return TenantContext.for_user(current_user)
