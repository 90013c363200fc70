import logging

from fastapi import APIRouter, Depends

from cafeapp.config import Settings
from cafeapp.deps import Principal, get_settings, require_admin
from cafeapp.errors import ForbiddenError
from cafeapp.schemas.common import ChannelAuthIn
from cafeapp.services.notify import channel_for
from cafeapp.util.responses import ok
from cafeapp.util.security import create_channel_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])

@router.post("/auth")
def authorize_channel(
    body: ChannelAuthIn,
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(require_admin),
):
    """Grant a subscription to the caller's own cafe channel; any other channel is 403."""
    channel = body.channel_name.strip()
    if channel != channel_for(principal.cafe_id):
        logger.warning("admin %s asked for channel %s outside cafe %s", principal.admin_id, channel, principal.cafe_id)
        raise ForbiddenError("Unauthorized - cafe mismatch")
    token = create_channel_token(settings, principal.admin_id, principal.cafe_id, channel, body.socket_id)
    return ok({"auth": token, "channel": channel, "expiresIn": settings.REALTIME_TOKEN_TTL_SEC})
