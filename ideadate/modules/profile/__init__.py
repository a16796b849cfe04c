"""modules/profile — stop profile hydration and manual overrides."""

from ideadate.modules.profile.hydrator import (
    ensure_profiles,
    hydrate,
    hydrate_stop,
    rehydrate_for_role_change,
    require_profiles,
    resolve_role,
)
from ideadate.modules.profile.overrides import apply_overrides, clear_overrides

__all__ = [
    "ensure_profiles",
    "hydrate",
    "hydrate_stop",
    "rehydrate_for_role_change",
    "require_profiles",
    "resolve_role",
    "apply_overrides",
    "clear_overrides",
]
