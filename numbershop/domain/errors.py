# numbershop/domain/errors.py
"""
Bledy domenowe. Kazdy niesie status HTTP, a mapowanie robi jeden
exception handler w main.create_app.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(ServiceError):
    status_code = 400


class Unauthorized(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class AlreadyProvisioned(Conflict):
    # API zwraca 400 dla juz aktywnego numeru
    status_code = 400


class ProvisioningInProgress(Conflict):
    pass


class InvalidTransition(Conflict):
    pass


class DuplicateQueueEntry(Conflict):
    pass


class UpstreamFailure(ServiceError):
    status_code = 502


class PaymentGatewayError(UpstreamFailure):
    pass


class TelephonyProviderError(UpstreamFailure):
    pass


class ProvisioningFailed(UpstreamFailure):
    pass


class InternalError(ServiceError):
    status_code = 500
