import logging
from edusocial import config
from edusocial.db.db_interface import DatabaseProvider
from edusocial.db.memory_provider import MemoryProvider
from edusocial.db.supabase_provider import SupabaseProvider

logger = logging.getLogger(__name__)


class DatabaseFactory:
    """Factory for creating database providers."""

    _instance = None

    @staticmethod
    def get_provider() -> DatabaseProvider:
        """
        Get or create the configured database provider instance.

        Returns:
            DatabaseProvider: SupabaseProvider when DATABASE_PROVIDER is "supabase",
            MemoryProvider when it is "memory"
        """
        if DatabaseFactory._instance is None:
            provider = config.DATABASE_PROVIDER.lower()

            if provider == "memory":
                logger.info("Using in-memory database (MemoryProvider)")
                DatabaseFactory._instance = MemoryProvider()
            elif provider == "supabase":
                logger.info("Using Supabase database (SupabaseProvider)")
                # The service role key bypasses RLS; ownership checks are done in the services
                key = config.SUPABASE_SERVICE_ROLE_KEY or config.SUPABASE_KEY
                if not all([config.SUPABASE_URL, key]):
                    missing_vars = [var for var, val in {
                        "SUPABASE_URL": config.SUPABASE_URL,
                        "SUPABASE_SERVICE_ROLE_KEY / SUPABASE_KEY": key
                    }.items() if not val]
                    raise Exception(f"Missing required Supabase environment variables: {', '.join(missing_vars)}")
                DatabaseFactory._instance = SupabaseProvider(url=config.SUPABASE_URL, key=key)
            else:
                raise Exception(f"Unsupported DATABASE_PROVIDER: {config.DATABASE_PROVIDER}")

            # Initialize the database
            DatabaseFactory._instance.init_db()

        return DatabaseFactory._instance

    @staticmethod
    def set_provider(provider: DatabaseProvider) -> None:
        """Install an explicit provider instance (used by tests and local tooling)."""
        DatabaseFactory._instance = provider
