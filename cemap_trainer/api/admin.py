from fastapi import APIRouter, Depends, Response
from typing import List
import logging

from cemap_trainer.api.deps import get_accounts, get_entitlements
from cemap_trainer.core.auth import require_admin
from cemap_trainer.models.orm import User
from cemap_trainer.models.schemas import AccessTokenOut, AdminStats, GrantPremiumRequest, UserOut
from cemap_trainer.services.accounts import AccountService
from cemap_trainer.services.entitlements import EntitlementStore

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/users", response_model=List[UserOut], dependencies=[Depends(require_admin)])
def list_users(accounts: AccountService = Depends(get_accounts)):
    return accounts.list_users()

@router.get("/stats", response_model=AdminStats, dependencies=[Depends(require_admin)])
def stats(accounts: AccountService = Depends(get_accounts)):
    return AdminStats(**accounts.stats())

@router.post("/grant-premium", response_model=AccessTokenOut, status_code=201)
def grant_premium(
    payload: GrantPremiumRequest,
    admin: User = Depends(require_admin),
    accounts: AccountService = Depends(get_accounts),
    entitlements: EntitlementStore = Depends(get_entitlements),
):
    user = accounts.get(payload.user_id)
    token = entitlements.grant(user.id, payload.days_valid)
    logger.info("Admin %s granted %d days of bundle access to %s", admin.id, payload.days_valid, user.id)
    return token

@router.delete("/users/{user_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_user(user_id: str, accounts: AccountService = Depends(get_accounts)):
    accounts.delete(user_id)
    return Response(status_code=204)
