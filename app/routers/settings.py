"""Operator settings: a public subset for the storefront, the rest admin-only."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.auth.dependencies import get_optional_user, require_admin
from app.database import get_db
from app.models.setting import Setting
from app.models.user import User, UserRole
from app.schemas.settings import (
    PublicSettingsResponse,
    SettingEnvelope,
    SettingListResponse,
    SettingResponse,
    SettingUpdate,
)
from app.services import settings as settings_service

router = APIRouter(prefix="/api/settings", tags=["Settings"])


@router.get("/public", response_model=PublicSettingsResponse)
def get_public_settings(db: Session = Depends(get_db)):
    return PublicSettingsResponse(**settings_service.public_settings(db))


@router.get("", response_model=SettingListResponse)
def list_settings(
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    rows = db.query(Setting).order_by(Setting.key).all()
    return SettingListResponse(settings=[SettingResponse.model_validate(r) for r in rows])


@router.get("/{key}", response_model=SettingEnvelope)
def get_setting(
    key: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    if key not in settings_service.PUBLIC_KEYS:
        if current_user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required")
        if current_user.role != UserRole.ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")

    row = db.query(Setting).filter(Setting.key == key).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found")
    return SettingEnvelope(setting=SettingResponse.model_validate(row))


@router.put("/{key}", response_model=SettingEnvelope)
def update_setting(
    key: str,
    payload: SettingUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    """Insert or update a setting"""
    row = settings_service.set_setting(db, key, payload.value)
    return SettingEnvelope(setting=SettingResponse.model_validate(row))
