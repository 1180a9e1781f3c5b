"""
API versioning constants to centralize route prefixes.
"""

API_PREFIX = "/api"
API_VERSION = "v1"
API_V1_PREFIX = f"{API_PREFIX}/{API_VERSION}"

# The front end has always reached the gateway proxy here.
WHATSAPP_PROXY_PREFIX = f"{API_PREFIX}/uaz"
