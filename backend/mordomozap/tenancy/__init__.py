"Tenancy utilities: request context and tenant id resolution."

from .constants import TENANT_HEADER  # noqa: F401
from .middleware import RequestContextMiddleware  # noqa: F401
from .resolution import require_tenant_id  # noqa: F401
