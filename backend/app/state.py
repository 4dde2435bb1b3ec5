"""Process-wide service instances used by the API routes."""

from app.cache import ScoreCache
from app.notifications import LoggingNotificationSink
from app.progress import ProgressStore

score_cache = ScoreCache()
notifier = LoggingNotificationSink()
progress_store = ProgressStore(score_cache=score_cache, notifier=notifier)


def get_progress_store() -> ProgressStore:
    return progress_store


def get_score_cache() -> ScoreCache:
    return score_cache
