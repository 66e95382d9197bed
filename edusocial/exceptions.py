"""
Error taxonomy shared by services and routes.

Services raise these; the API layer maps each one to an HTTP status and a
localized message at the operation boundary.
"""


class EduSocialError(Exception):
    """Base class for application errors."""

    status_code = 500
    default_message = "Beklenmeyen bir hata oluştu"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DataUnavailable(EduSocialError):
    """A read from the backend failed; callers degrade to empty or last-known data."""

    status_code = 503
    default_message = "Veriler yüklenemedi"


class ValidationFailed(EduSocialError):
    """Required fields missing or values outside the allowed set."""

    status_code = 400
    default_message = "Lütfen tüm alanları doldurun"


class Unauthorized(EduSocialError):
    """Mutation attempted by a non-owner or non-admin."""

    status_code = 403
    default_message = "Bu işlem için yetkiniz yok"


class NotFound(EduSocialError):
    status_code = 404
    default_message = "Kayıt bulunamadı"


class UpstreamServiceError(EduSocialError):
    """A third-party LLM or model-listing call failed."""

    status_code = 502
    default_message = "Harici servis yanıt vermedi"


class ConflictIgnored(EduSocialError):
    """Duplicate submission or uniqueness race; the backend state wins."""

    status_code = 409
    default_message = "İşlem zaten sürüyor"
