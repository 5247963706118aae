# finance_tracker/errors.py


class FinanceTrackerError(Exception):
    """Base error carrying the HTTP status the web layer should answer with."""

    status = 500

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def to_payload(self):
        return {"error": self.message}


class ValidationError(FinanceTrackerError):
    status = 400

    def __init__(self, message="Invalid input", details=None):
        super().__init__(message)
        self.details = details or []

    def to_payload(self):
        payload = super().to_payload()
        if self.details:
            payload["details"] = self.details
        return payload


class AuthError(FinanceTrackerError):
    status = 401
