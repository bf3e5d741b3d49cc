from supabase import create_client, Client, ClientOptions
from app.config import settings


def _options() -> ClientOptions:
    # Every store round trip is bounded; a hung PostgREST call fails the job instead of blocking a worker.
    return ClientOptions(
        postgrest_client_timeout=settings.store_timeout_sec,
        auto_refresh_token=False,
        persist_session=False,
    )


class SupabaseClient:
    _client: Client = None
    _service_client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._client = create_client(settings.supabase_url, settings.supabase_key, options=_options())
        return cls._client

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Use in gate checks and background workers."""
        if cls._service_client is None and settings.supabase_service_role_key:
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key, options=_options()
            )
        return cls._service_client or cls.get_client()


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def get_service_supabase() -> Client:
    return SupabaseClient.get_service_client()
