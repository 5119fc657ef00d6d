"""Archive entry edits: dex slot renaming and packaging steps."""

from .dex_renamer import (
    CANONICAL_DEX_NAME,
    DEX_STATE_FILE_NAME,
    DEX_STATE_SCHEMA_VERSION,
    DexRenamerStateError,
    DexRenameManager,
    dex_file_sort_key,
    is_canonical_dex,
    slot_for_name,
    slot_name,
)
from .models import PackagedFileUpdate, PackagingPlan
from .step import IncrementalPackagingStep, PlanNotPendingError, error_code_for
from .updates import (
    NativeLibraryAbiPredicate,
    asset_updates,
    deleted_names,
    from_incremental_file_set,
    java_resource_updates,
    native_library_updates,
    written_updates,
)

__all__ = [
    "CANONICAL_DEX_NAME",
    "DEX_STATE_FILE_NAME",
    "DEX_STATE_SCHEMA_VERSION",
    "DexRenameManager",
    "DexRenamerStateError",
    "IncrementalPackagingStep",
    "NativeLibraryAbiPredicate",
    "PackagedFileUpdate",
    "PackagingPlan",
    "PlanNotPendingError",
    "asset_updates",
    "deleted_names",
    "dex_file_sort_key",
    "error_code_for",
    "from_incremental_file_set",
    "is_canonical_dex",
    "java_resource_updates",
    "native_library_updates",
    "slot_for_name",
    "slot_name",
    "written_updates",
]
