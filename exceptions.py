# orders_dashboard/exceptions.py


class GatewayError(Exception):
    """
    Raised when a call to the orders API fails: the network call itself,
    or any non-2xx response other than 401. Carries enough of the response
    for the route to flash something useful and for the log to be actionable.
    """
    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        payload=None,
        method: str | None = None,
        path: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload
        self.method = method
        self.path = path


class AuthenticationRequired(GatewayError):
    """The API answered 401. The session is torn down and the user sent to login."""
    pass


class ExportFailed(Exception):
    """CSV export could not gather the filtered records. Nothing is downloaded."""
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ValidationFailed(Exception):
    """Form input rejected before calling the API. errors maps field -> message."""
    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors
