"""Best-effort practice activity tracking.

When a signed-in student opens a question set an activity row is created
with `activity_type="started"`; on submission it is updated to
`completed` with the score, counts and wall-clock time spent, and the
user's aggregate stats (totals and day streaks) are rolled forward.

Tracking is telemetry, not part of grading: every failure is logged and
swallowed so the caller never sees it. Each call uses its own database
session so a failed write cannot poison the request's session.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from sqlmodel import Session
from . import models, repositories
from .database import engine as default_engine
from .grading import GradeResult

logger = logging.getLogger("literacy.tracking")


def roll_streak(stats: models.UserStats, today: date) -> None:
    """Advance `current_streak_days`/`longest_streak_days` for practice on `today`."""
    last = stats.last_practice_date
    if last == today:
        if stats.current_streak_days == 0:
            stats.current_streak_days = 1
    elif last is not None and last == today - timedelta(days=1):
        stats.current_streak_days += 1
    else:
        stats.current_streak_days = 1
    stats.longest_streak_days = max(stats.longest_streak_days, stats.current_streak_days)
    stats.last_practice_date = today


class ActivityTracker:
    def __init__(self, engine=None):
        self.engine = engine if engine is not None else default_engine

    def start(self, user_id: Optional[int], practice_content_id: Optional[int]) -> Optional[int]:
        """Create a `started` activity row; returns its id or None."""
        if not user_id:
            return None
        try:
            with Session(self.engine) as session:
                activity = repositories.ActivityRepository(session).create(
                    models.UserActivity(user_id=user_id, practice_content_id=practice_content_id, activity_type="started")
                )
                return activity.id
        except Exception:
            logger.exception("failed to record activity start user=%s content=%s", user_id, practice_content_id)
            return None

    def complete(self, activity_id: Optional[int], user_id: Optional[int], result: GradeResult, elapsed_seconds: int) -> bool:
        """Mark the activity completed and update the user's stats.

        Returns True when both writes succeeded.
        """
        if not user_id:
            return False
        try:
            with Session(self.engine) as session:
                activity_repo = repositories.ActivityRepository(session)
                activity = activity_repo.get(activity_id) if activity_id else None
                if activity is None or activity.user_id != user_id:
                    logger.warning("activity %s not found for user %s; not updating", activity_id, user_id)
                    return False
                now = datetime.now(timezone.utc)
                activity.activity_type = "completed"
                activity.score = result.score
                activity.total_questions = result.total_questions
                activity.correct_answers = result.correct_answers
                activity.time_spent_seconds = int(elapsed_seconds)
                activity.completed_at = now
                activity_repo.save(activity)

                stats_repo = repositories.StatsRepository(session)
                stats = stats_repo.get_or_create(user_id)
                stats.total_practice_sessions += 1
                stats.total_questions_answered += result.total_questions
                stats.total_correct_answers += result.correct_answers
                stats.total_time_spent_seconds += int(elapsed_seconds)
                roll_streak(stats, now.date())
                stats_repo.save(stats)
            return True
        except Exception:
            logger.exception("failed to record activity completion activity=%s user=%s", activity_id, user_id)
            return False
