from datetime import UTC, datetime, timedelta

import jwt

from core.config import settings

# --- 관리자 Bearer 토큰 ---
# 로그인/세션 발급은 외부 관리자 서비스 몫이다. 이 서비스는 같은 비밀키로
# 서명된 토큰의 서명, 만료, scope만 확인한다.
#
# Payload: {"sub": "admin@email.com", "scope": "gallery:admin", "exp": 1708500000}

ADMIN_SCOPE = "gallery:admin"


def create_admin_token(
    subject: str,
    expires_delta: timedelta | None = None,
    scope: str = ADMIN_SCOPE,
) -> str:
    """관리자 토큰 발급. 운영 스크립트와 테스트에서만 쓴다."""
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    )
    payload = {"sub": subject, "scope": scope, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict | None:
    """서명과 만료를 검증한 payload. 실패하면 None."""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError:
        return None


def verify_admin_token(token: str) -> str | None:
    """관리자 scope가 있는 유효한 토큰이면 subject를 돌려준다."""
    payload = decode_token(token)
    if not payload or payload.get("scope") != ADMIN_SCOPE:
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) and subject else None
