import jwt
from datetime import datetime, timedelta, timezone
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError
from cafeapp.config import Settings

ph = PasswordHasher()

def hash_pw(p: str) -> str:
    return ph.hash(p)

def verify_pw(hashv: str, p: str) -> bool:
    try:
        ph.verify(hashv, p)
        return True
    except (VerificationError, InvalidHashError):
        return False

def create_token(settings: Settings, sub: str, cafe_id: str, role: str) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=settings.JWT_EXP_MIN)
    payload = {
        "sub": sub, "cafe_id": cafe_id, "role": role, "iss": settings.JWT_ISS,
        "iat": int(now.timestamp()), "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.APP_SECRET, algorithm="HS256")

def decode_token(settings: Settings, token: str) -> dict:
    return jwt.decode(token, settings.APP_SECRET, algorithms=["HS256"], issuer=settings.JWT_ISS)

CHANNEL_AUDIENCE = "realtime"

def create_channel_token(settings: Settings, sub: str, cafe_id: str, channel: str, socket_id: str | None = None) -> str:
    """Short-lived grant the pub/sub bridge checks before subscribing a socket to ``channel``."""
    now = datetime.now(timezone.utc)
    exp = now + timedelta(seconds=settings.REALTIME_TOKEN_TTL_SEC)
    payload = {
        "sub": sub, "cafe_id": cafe_id, "channel": channel, "socket_id": socket_id,
        "iss": settings.JWT_ISS, "aud": CHANNEL_AUDIENCE,
        "iat": int(now.timestamp()), "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.APP_SECRET, algorithm="HS256")

def decode_channel_token(settings: Settings, token: str) -> dict:
    return jwt.decode(
        token, settings.APP_SECRET, algorithms=["HS256"],
        issuer=settings.JWT_ISS, audience=CHANNEL_AUDIENCE,
    )
