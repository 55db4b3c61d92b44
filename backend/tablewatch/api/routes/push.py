"""Push notification registration: device tokens for monitor-match alerts."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tablewatch.api.deps import get_user_id
from tablewatch.core.dates import utcnow
from tablewatch.db.session import get_db
from tablewatch.models.push_token import PushToken

router = APIRouter()
logger = logging.getLogger(__name__)


class RegisterPushBody(BaseModel):
    device_token: str = Field(..., min_length=1, max_length=256, description="APNs hex token or Expo push token")
    platform: str = Field(default="ios", pattern="^(ios|android)$")


@router.post("/push/register")
def register_push_token(
    body: RegisterPushBody,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_user_id),
):
    """
    Register a device for monitor-match pushes.
    Idempotent: the same token is upserted and moves to the calling user if it changed hands.
    """
    token_str = body.device_token.strip()
    existing = db.query(PushToken).filter(PushToken.device_token == token_str).first()
    if existing:
        existing.user_id = user_id
        existing.platform = body.platform
        existing.updated_at = utcnow()
        db.commit()
        return {"ok": True, "message": "Token already registered"}
    db.add(PushToken(user_id=user_id, device_token=token_str, platform=body.platform))
    db.commit()
    logger.info("Registered push token for user=%s platform=%s", user_id, body.platform)
    return {"ok": True, "message": "Token registered"}
