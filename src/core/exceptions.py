"""앱 전역 커스텀 예외 클래스.

AppException을 상속하면 전역 핸들러(error_handlers.py)가 자동으로
{"error_code": "...", "message": "..."} 형식의 JSON 응답을 생성한다.

DerivedAssetError / StorageError는 백그라운드 파이프라인 내부에서만
쓰이며 HTTP 응답으로 나가지 않는다.
"""


class AppException(Exception):
    """앱 전역 베이스 예외.

    서브클래스에서 status_code, error_code, message를 클래스 변수로 정의하면
    전역 핸들러가 해당 값을 읽어 HTTP 응답을 생성한다.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "서버 내부 오류가 발생했습니다"

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


# --- 인증 관련 ---


class InvalidToken(AppException):
    status_code = 401
    error_code = "INVALID_TOKEN"
    message = "유효하지 않거나 만료된 토큰입니다"


# --- 업로드 관련 ---


class UploadValidationError(AppException):
    status_code = 400
    error_code = "VALIDATION_ERROR"
    message = "업로드 요청 형식이 올바르지 않습니다"


class UploadTooLarge(AppException):
    status_code = 413
    error_code = "UPLOAD_TOO_LARGE"
    message = "업로드 가능한 최대 파일 크기를 초과했습니다"


class MediaNotFound(AppException):
    status_code = 404
    error_code = "MEDIA_NOT_FOUND"
    message = "미디어 레코드를 찾을 수 없습니다"


class PipelineBusy(AppException):
    status_code = 503
    error_code = "PIPELINE_BUSY"
    message = "처리 대기열이 가득 찼습니다. 잠시 후 다시 시도하세요"


class StorageNotConfigured(AppException):
    status_code = 500
    error_code = "STORAGE_NOT_CONFIGURED"
    message = "S3 호환 스토리지가 설정되지 않았습니다"


# --- 파이프라인 내부 ---


class DerivedAssetError(Exception):
    """썸네일 등 파생 에셋 생성 실패. 복구 가능 (폴백 적용)."""


class StorageError(Exception):
    """오브젝트 스토리지 업로드 실패. 원본 업로드 실패 시 작업 전체가 실패한다."""
