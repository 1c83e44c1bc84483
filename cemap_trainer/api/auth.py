from fastapi import APIRouter, Depends, Response

from cemap_trainer.api.deps import get_accounts, get_app_settings, get_entitlements
from cemap_trainer.core.auth import create_access_token, get_current_user
from cemap_trainer.core.config import Settings
from cemap_trainer.models.orm import Product, User
from cemap_trainer.models.schemas import (
    AccessTokenOut, AuthResponse, LoginRequest, ProfileResponse, RegisterRequest, UserOut,
)
from cemap_trainer.services.accounts import AccountService
from cemap_trainer.services.entitlements import EntitlementStore

router = APIRouter()

def _auth_response(user: User, settings: Settings) -> AuthResponse:
    token = create_access_token(user.id, user.roles, settings)
    return AuthResponse(access_token=token, user=UserOut.model_validate(user))

@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    payload: RegisterRequest,
    accounts: AccountService = Depends(get_accounts),
    settings: Settings = Depends(get_app_settings),
):
    user = accounts.register(payload.email, payload.password, payload.name)
    return _auth_response(user, settings)

@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    accounts: AccountService = Depends(get_accounts),
    settings: Settings = Depends(get_app_settings),
):
    user = accounts.authenticate(payload.email, payload.password)
    return _auth_response(user, settings)

@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user

@router.delete("/me", status_code=204)
def delete_me(user: User = Depends(get_current_user), accounts: AccountService = Depends(get_accounts)):
    accounts.delete(user.id)
    return Response(status_code=204)

@router.get("/profile", response_model=ProfileResponse)
def profile(user: User = Depends(get_current_user), entitlements: EntitlementStore = Depends(get_entitlements)):
    return ProfileResponse(
        user=UserOut.model_validate(user),
        tokens=[AccessTokenOut.model_validate(t) for t in entitlements.list_tokens(user.id)],
        has_exam_access=entitlements.check_access(user.id, Product.EXAM),
        has_scenario_access=entitlements.check_access(user.id, Product.SCENARIO),
    )
