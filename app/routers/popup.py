from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.auth.dependencies import require_admin
from app.database import get_db
from app.models.setting import PopupConfig
from app.models.user import User
from app.schemas.settings import PopupConfigResponse, PopupConfigUpdate, PopupEnvelope

router = APIRouter(prefix="/api/popup", tags=["Popup"])


@router.get("", response_model=PopupEnvelope)
def get_active_popup(db: Session = Depends(get_db)):
    """First active popup, or null when none is active"""
    popup = (
        db.query(PopupConfig)
        .filter(PopupConfig.is_active.is_(True))
        .order_by(PopupConfig.id)
        .first()
    )
    return PopupEnvelope(popup=PopupConfigResponse.model_validate(popup) if popup else None)


@router.put("", response_model=PopupEnvelope)
def save_popup(
    payload: PopupConfigUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_admin),
):
    """Update the popup in place, creating it on first save"""
    popup = db.query(PopupConfig).order_by(PopupConfig.id).first()
    if popup is None:
        popup = PopupConfig()
        db.add(popup)

    popup.message = payload.message
    popup.button_text = payload.button_text
    popup.button_link = payload.button_link
    popup.is_active = payload.is_active

    db.commit()
    db.refresh(popup)
    return PopupEnvelope(popup=PopupConfigResponse.model_validate(popup))
