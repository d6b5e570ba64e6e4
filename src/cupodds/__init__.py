"""
cupodds: simulated betting odds for FIFA World Cup 2026 fixtures.

Match and group-winner distributions come from seeded Monte Carlo
simulations over FIFA ranking points and are cached in a local SQLite store.
"""

from importlib.metadata import PackageNotFoundError, version

try:  # pragma: no cover - exercised in packaging workflows
    __version__ = version("cupodds")
except PackageNotFoundError:  # pragma: no cover - local editable installs
    __version__ = "0.0.0"

_EXPORTS = {
    # Odds service
    "OddsService": ".betting.service",
    # Simulators
    "simulate_match": ".betting.models",
    "simulate_group_winner": ".betting.models",
    "probability_to_american_odds": ".betting.utils",
    # Cache helpers
    "clear_cache": ".betting.cache",
    "get_cache_manager": ".betting.cache",
    # Configuration
    "get_config": ".config",
    "update_config": ".config",
    "reset_config": ".config",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> object:  # pragma: no cover - thin lazy importer
    from importlib import import_module

    target_module = _EXPORTS.get(name)
    if not target_module:
        raise AttributeError(f"module {__name__} has no attribute {name}")
    module = import_module(target_module, __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


def __dir__() -> list[str]:  # pragma: no cover - trivial
    return sorted(list(globals().keys()) + __all__)
