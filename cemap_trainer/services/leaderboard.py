"""
Score ledger: append-only high scores with weekly and all-time views.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import Float, cast, select
from sqlalchemy.orm import Session

from cemap_trainer.core.database import utcnow
from cemap_trainer.models.orm import HighScore, LeaderboardMode

logger = logging.getLogger(__name__)

WEEKLY_WINDOW_DAYS = 7


def _percentage():
    return cast(HighScore.score, Float) / HighScore.total


class ScoreLedger:
    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        window_days: int = WEEKLY_WINDOW_DAYS,
    ):
        self.db = db
        self.clock = clock
        self.window = timedelta(days=window_days)

    def record(self, name: str, score: int, total: int, mode: LeaderboardMode) -> HighScore:
        entry = HighScore(
            name=name,
            score=score,
            total=total,
            mode=LeaderboardMode(mode).value,
            timestamp=self.clock(),
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        logger.info("Recorded %s score %d/%d for %s", entry.mode, score, total, name)
        return entry

    def all_time_high(self, mode: LeaderboardMode) -> Optional[HighScore]:
        """Best percentage ever; the earliest record wins a tie."""
        stmt = (
            select(HighScore)
            .where(HighScore.mode == LeaderboardMode(mode).value)
            .order_by(_percentage().desc(), HighScore.id.asc())
            .limit(1)
        )
        return self.db.scalar(stmt)

    def weekly_top(self, mode: LeaderboardMode, limit: int = 10) -> List[HighScore]:
        """Best scores of the trailing week, minus the all-time champion."""
        mode = LeaderboardMode(mode)
        since = self.clock() - self.window

        stmt = select(HighScore).where(
            HighScore.mode == mode.value,
            HighScore.timestamp >= since,
        )
        champion = self.all_time_high(mode)
        if champion is not None:
            stmt = stmt.where(HighScore.id != champion.id)

        stmt = stmt.order_by(
            _percentage().desc(),
            HighScore.timestamp.desc(),
            HighScore.id.desc(),
        ).limit(limit)
        return list(self.db.scalars(stmt))
