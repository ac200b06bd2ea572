class ServiceError(Exception):
    """
    Base for errors surfaced to the caller. `status_code` is the HTTP status a
    request handler should answer with; `message` is safe to show to users.
    """
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message}


class ValidationError(ServiceError):
    status_code = 400


class InvalidState(ServiceError):
    status_code = 400


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class UpstreamFailure(ServiceError):
    # refund / email provider failures; callers log these and move on
    status_code = 502
