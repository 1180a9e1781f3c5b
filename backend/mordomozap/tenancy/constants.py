"""
Constants for tenancy concerns.
"""

# Optional header the dashboard sends alongside the JSON body. The body's
# tenantId stays authoritative; the header only feeds request logs.
TENANT_HEADER = "X-Tenant-ID"
