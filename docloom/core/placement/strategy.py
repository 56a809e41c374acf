"""Local vs remote strategy selection."""

from .models import Strategy, StrategyPreference

HIGH_COMPLEXITY_THRESHOLD = 10


def choose_strategy(
    has_credential: bool,
    has_connectivity: bool,
    preference: StrategyPreference = StrategyPreference.AUTO,
    complexity_hint: int = 1,
    prefer_quality: bool = False,
    high_complexity_threshold: int = HIGH_COMPLEXITY_THRESHOLD,
) -> Strategy:
    """Pick the strategy for one placement request.

    ``local-only`` always wins. ``remote-only`` still degrades to local when
    the remote service is unusable. ``auto`` goes remote only when the
    service is usable and the code is complex or quality is preferred.
    """
    preference = StrategyPreference(preference)
    remote_usable = has_credential and has_connectivity

    if preference == StrategyPreference.LOCAL_ONLY or not remote_usable:
        return Strategy.LOCAL
    if preference == StrategyPreference.REMOTE_ONLY:
        return Strategy.REMOTE
    if complexity_hint >= high_complexity_threshold or prefer_quality:
        return Strategy.REMOTE
    return Strategy.LOCAL
