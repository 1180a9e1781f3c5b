"""
Tenant id extraction for proxy endpoints.
"""

from typing import Optional

from fastapi import Request

from mordomozap.core.errors import MissingTenantError


def require_tenant_id(request: Request, tenant_id: Optional[str]) -> str:
    """
    Return the stripped tenant id from a request body, or raise a 400.

    The resolved id is pinned on request.state so request logs carry it.
    """
    value = (tenant_id or "").strip() if isinstance(tenant_id, str) else ""
    if not value:
        raise MissingTenantError()
    request.state.tenant_id = value
    return value
