# Store-specific data adapters
# Each adapter maps the store's Portuguese schema onto the canonical columns

from .export_store import ExportFileStore, LoadedTables
from .supabase_store import SupabaseRetailStore, get_supabase_client

__all__ = ["ExportFileStore", "LoadedTables", "SupabaseRetailStore", "get_supabase_client"]
