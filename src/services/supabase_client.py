"""Supabase client wrapper with async context manager support."""

import os
import logging
from datetime import datetime, timezone
from typing import Optional
from supabase import create_client, Client
from supabase.client import ClientOptions
from src.utils.errors import DataStoreError

logger = logging.getLogger(__name__)

# Global client instance (singleton pattern)
_client: Optional[Client] = None

def get_supabase_client() -> Client:
    """Get or create Supabase client singleton."""
    global _client

    if _client is None:
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

        if not url or not key:
            raise DataStoreError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )

        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", extra={"supabase_url": url})

    return _client

class SupabaseClient:
    """Async context manager for Supabase client."""

    def __init__(self):
        self.client: Optional[Client] = None

    async def __aenter__(self) -> Client:
        self.client = get_supabase_client()
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                extra={"error": str(exc_val), "error_type": exc_type.__name__}
            )
        return False

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

# Leads table operations
async def get_lead_by_id(lead_id: str) -> Optional[dict]:
    """Get a lead by ID."""
    async with SupabaseClient() as client:
        try:
            result = client.table("leads").select("*").eq("id", lead_id).execute()
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise DataStoreError(f"Failed to get lead: {e}")

async def get_leads_by_broker(broker_id: str) -> list[dict]:
    """Get all leads owned by a broker, newest first."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table("leads")
                .select("*")
                .eq("user_id", broker_id)
                .order("data_criacao", desc=True)
                .execute()
            )
            return result.data if result.data else []
        except Exception as e:
            raise DataStoreError(f"Failed to get leads: {e}")

async def create_lead(lead_data: dict) -> dict:
    """Create a new lead."""
    async with SupabaseClient() as client:
        try:
            result = client.table("leads").insert(lead_data).execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise DataStoreError("Failed to create lead: no data returned")
        except DataStoreError:
            raise
        except Exception as e:
            raise DataStoreError(f"Failed to create lead: {e}")

async def update_lead(lead_id: str, updates: dict) -> dict:
    """Update a lead."""
    async with SupabaseClient() as client:
        try:
            result = client.table("leads").update(updates).eq("id", lead_id).execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise DataStoreError(f"Failed to update lead: {lead_id}")
        except DataStoreError:
            raise
        except Exception as e:
            raise DataStoreError(f"Failed to update lead: {e}")

async def delete_lead(lead_id: str) -> None:
    """Hard-delete a lead (explicit user deletion only)."""
    async with SupabaseClient() as client:
        try:
            client.table("leads").delete().eq("id", lead_id).execute()
        except Exception as e:
            raise DataStoreError(f"Failed to delete lead: {e}")

async def find_matching_properties_rpc(lead_id: str) -> list[dict]:
    """Call the ``find_matching_properties`` database function."""
    async with SupabaseClient() as client:
        try:
            result = client.rpc("find_matching_properties", {"lead_id": lead_id}).execute()
            return result.data if result.data else []
        except Exception as e:
            raise DataStoreError(f"Failed to find matching properties: {e}")

# Profiles table operations
async def get_broker_profile(broker_id: str) -> Optional[dict]:
    """Get a broker profile (``perfis``) by user ID."""
    async with SupabaseClient() as client:
        try:
            result = client.table("perfis").select("*").eq("id", broker_id).execute()
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise DataStoreError(f"Failed to get broker profile: {e}")

# Assistant conversation operations
async def get_conversation(conversation_id: str) -> Optional[dict]:
    """Get an assistant conversation by ID."""
    async with SupabaseClient() as client:
        try:
            result = client.table("iza_conversations").select("*").eq("id", conversation_id).execute()
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise DataStoreError(f"Failed to get conversation: {e}")

async def create_conversation(conversation_data: dict) -> dict:
    """Create a new assistant conversation."""
    async with SupabaseClient() as client:
        try:
            payload = {"created_at": _now_iso(), "status": "active", **conversation_data}
            result = client.table("iza_conversations").insert(payload).execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise DataStoreError("Failed to create conversation: no data returned")
        except DataStoreError:
            raise
        except Exception as e:
            raise DataStoreError(f"Failed to create conversation: {e}")

async def update_conversation(conversation_id: str, updates: dict) -> None:
    """Update an assistant conversation (state, lead score, summary)."""
    async with SupabaseClient() as client:
        try:
            client.table("iza_conversations").update(updates).eq("id", conversation_id).execute()
        except Exception as e:
            raise DataStoreError(f"Failed to update conversation: {e}")

async def save_message(conversation_id: str, role: str, content: str, metadata: Optional[dict] = None) -> None:
    """Append a chat message to ``iza_messages``."""
    async with SupabaseClient() as client:
        try:
            client.table("iza_messages").insert({
                "conversation_id": conversation_id,
                "role": role,
                "content": content,
                "metadata": metadata,
                "created_at": _now_iso(),
            }).execute()
        except Exception as e:
            raise DataStoreError(f"Failed to save message: {e}")

async def get_messages(conversation_id: str, limit: int = 50) -> list[dict]:
    """Get the messages of a conversation in chronological order."""
    async with SupabaseClient() as client:
        try:
            result = (
                client.table("iza_messages")
                .select("*")
                .eq("conversation_id", conversation_id)
                .order("created_at")
                .limit(limit)
                .execute()
            )
            return result.data if result.data else []
        except Exception as e:
            raise DataStoreError(f"Failed to get messages: {e}")
