"""Client modules for external service integrations."""

from account_gateway.clients.supabase_client import SupabaseClient
from account_gateway.clients.identity_gateway import IdentityGateway
from account_gateway.clients.profile_store_gateway import ProfileStoreGateway

__all__ = [
    "SupabaseClient",
    "IdentityGateway",
    "ProfileStoreGateway"
]
