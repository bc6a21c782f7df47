from .base import MonthWindow, ProviderClient
from .diyanet import DiyanetProvider

__all__ = ["MonthWindow", "ProviderClient", "DiyanetProvider", "get_provider"]

_PROVIDERS = {
    "diyanet": DiyanetProvider,
}


def get_provider(config: dict, session=None):
    """Factory: return provider instance for config["type"] (default diyanet)."""
    cls = _PROVIDERS.get((config.get("type") or "diyanet").lower())
    if not cls:
        return None
    return cls(config, session=session)
