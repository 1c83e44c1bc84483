"""
Request-scoped service construction.

App-wide collaborators (settings, question bank, rng, clock, payment
gateway) live on `app.state`; stores are built per request around the
request's database session.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from cemap_trainer.core.config import Settings
from cemap_trainer.core.database import get_db
from cemap_trainer.services.accounts import AccountService
from cemap_trainer.services.entitlements import EntitlementStore
from cemap_trainer.services.leaderboard import ScoreLedger
from cemap_trainer.services.payments import PaymentService
from cemap_trainer.services.question_bank import QuestionBank
from cemap_trainer.services.selector import QuestionSelector


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_question_bank(request: Request) -> QuestionBank:
    return request.app.state.question_bank


def get_selector(request: Request) -> QuestionSelector:
    return QuestionSelector(request.app.state.question_bank, request.app.state.rng)


def get_entitlements(request: Request, db: Session = Depends(get_db)) -> EntitlementStore:
    return EntitlementStore(
        db,
        clock=request.app.state.clock,
        bundle_validity_days=request.app.state.settings.BUNDLE_VALIDITY_DAYS,
    )


def get_payment_service(
    request: Request,
    entitlements: EntitlementStore = Depends(get_entitlements),
) -> PaymentService:
    return PaymentService(request.app.state.payment_gateway, entitlements, request.app.state.settings)


def get_ledger(request: Request, db: Session = Depends(get_db)) -> ScoreLedger:
    return ScoreLedger(
        db,
        clock=request.app.state.clock,
        window_days=request.app.state.settings.LEADERBOARD_WINDOW_DAYS,
    )


def get_accounts(request: Request, db: Session = Depends(get_db)) -> AccountService:
    return AccountService(
        db,
        admin_emails=request.app.state.settings.ADMIN_EMAILS,
        clock=request.app.state.clock,
    )
