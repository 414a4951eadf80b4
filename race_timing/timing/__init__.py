"""
Timing Engine

Modules:
- settings: RaceConfig, start overrides, cutoff parsing, settings file
- resolution: Elapsed time and Finisher / DNF / DSQ classification
- ranking: Overall, gender and category dense ranks
- leaderboard: Display rows, category views and participant detail
"""


def __getattr__(name):
    """Lazy imports to avoid RuntimeWarning when running modules directly."""
    if name == "RaceConfig":
        from race_timing.timing.settings import RaceConfig
        return RaceConfig
    if name == "load_race_config":
        from race_timing.timing.settings import load_race_config
        return load_race_config
    if name == "resolve_participants":
        from race_timing.timing.resolution import resolve_participants
        return resolve_participants
    if name == "rank_rows":
        from race_timing.timing.ranking import rank_rows
        return rank_rows
    if name == "build_leaderboard":
        from race_timing.timing.leaderboard import build_leaderboard
        return build_leaderboard
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
