from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from cemap_trainer.api.deps import get_ledger
from cemap_trainer.models.orm import LeaderboardMode
from cemap_trainer.models.schemas import HighScoreCreate, HighScoreOut
from cemap_trainer.services.leaderboard import ScoreLedger

router = APIRouter()

@router.post("/high-scores", response_model=HighScoreOut, status_code=201)
def submit_high_score(payload: HighScoreCreate, ledger: ScoreLedger = Depends(get_ledger)):
    return ledger.record(payload.name, payload.score, payload.total, payload.mode)

@router.get("/high-scores", response_model=List[HighScoreOut])
def weekly_high_scores(
    mode: LeaderboardMode = Query(LeaderboardMode.EXAM),
    limit: int = Query(10, ge=1, le=50),
    ledger: ScoreLedger = Depends(get_ledger),
):
    return ledger.weekly_top(mode, limit)

@router.get("/all-time-high-score", response_model=Optional[HighScoreOut])
def all_time_high_score(
    mode: LeaderboardMode = Query(LeaderboardMode.EXAM),
    ledger: ScoreLedger = Depends(get_ledger),
):
    return ledger.all_time_high(mode)
