"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import acreate_client

from school_sync.adapters.supabase_message_repository import (
    SupabaseMessageRepository,
)
from school_sync.adapters.supabase_school_repository import SupabaseSchoolRepository
from school_sync.config import Settings
from school_sync.services.messages import MessageStream
from school_sync.services.registry import SchoolRegistry
from school_sync.services.sync import SyncSession


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    registry: SchoolRegistry
    message_stream: MessageStream
    session: SyncSession
    close_resources: Callable[[], Awaitable[None]]


async def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = await acreate_client(
        resolved_settings.supabase_url, resolved_settings.supabase_key
    )
    registry = SchoolRegistry(
        SupabaseSchoolRepository(
            supabase_client, table=resolved_settings.schools_table
        )
    )
    message_stream = MessageStream(
        SupabaseMessageRepository(
            supabase_client, table=resolved_settings.messages_table
        ),
        window_size=resolved_settings.message_window_size,
    )
    session = SyncSession(
        registry=registry,
        message_stream=message_stream,
        fee_table=resolved_settings.fee_table(),
    )

    async def close_resources() -> None:
        await supabase_client.remove_all_channels()

    return AppContainer(
        settings=resolved_settings,
        registry=registry,
        message_stream=message_stream,
        session=session,
        close_resources=close_resources,
    )
