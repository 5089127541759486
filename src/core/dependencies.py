from functools import lru_cache

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import settings
from core.exceptions import InvalidToken
from core.security import verify_admin_token
from processor.worker_pool import IngestWorkerPool
from service.classifier import GenreClassifier
from service.object_store import ObjectStore
from service.status_tracker import UploadStatusTracker

# HTTPBearer:
# - "Authorization: Bearer <token>" 헤더에서 토큰을 추출
# - auto_error=False: 헤더가 없을 때도 INVALID_TOKEN 형식으로 응답하기 위함
bearer_scheme = HTTPBearer(auto_error=False)


def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """관리자 토큰을 검증하고 subject(이메일)를 반환한다.

    토큰 발급(로그인)은 외부 세션 서비스 담당. 여기서는 서명과 만료만 본다.
    """
    if credentials is None:
        raise InvalidToken("인증 토큰이 필요합니다")

    subject = verify_admin_token(credentials.credentials)
    if not subject:
        raise InvalidToken
    return subject


def get_tracker(request: Request) -> UploadStatusTracker:
    return request.app.state.tracker


def get_worker_pool(request: Request) -> IngestWorkerPool:
    return request.app.state.worker_pool


def get_classifier(request: Request) -> GenreClassifier | None:
    return request.app.state.classifier


@lru_cache(maxsize=1)
def _default_object_store() -> ObjectStore:
    return ObjectStore.from_settings(settings)


def get_object_store() -> ObjectStore:
    """스토리지 설정이 없으면 작업을 만들기 전에 StorageNotConfigured로 실패한다."""
    return _default_object_store()
