"""Registration gateway between Supabase Auth and the auth_info profile store."""

__version__ = "1.0.0"
