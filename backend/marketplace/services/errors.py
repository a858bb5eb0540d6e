class MarketplaceError(Exception):
    status_code = 500
    code = "internal_error"
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class Unauthenticated(MarketplaceError):
    status_code = 401
    code = "unauthenticated"
    default_detail = "Not signed in"


class Forbidden(MarketplaceError):
    status_code = 403
    code = "forbidden"
    default_detail = "You do not have permission to perform this action"


class NotFound(MarketplaceError):
    status_code = 404
    code = "not_found"
    default_detail = "Not found"


class Conflict(MarketplaceError):
    status_code = 409
    code = "conflict"
    default_detail = "Conflicting state"


class ConversationNotActive(Conflict):
    code = "conversation_not_active"
    default_detail = "Messages are only available for accepted or engaged applications"


class InvalidInput(MarketplaceError):
    status_code = 400
    code = "invalid_input"
    default_detail = "Invalid input"


class SignatureInvalid(MarketplaceError):
    status_code = 400
    code = "signature_invalid"
    default_detail = "Invalid webhook signature"


class SubscriptionRequired(Forbidden):
    code = "subscription_required"
    default_detail = "An active subscription is required to post jobs"


class TooManyAttempts(MarketplaceError):
    status_code = 429
    code = "too_many_attempts"
    default_detail = "Too many attempts, try again later"

    def __init__(self, retry_after_seconds: float, detail: str | None = None):
        super().__init__(detail)
        self.retry_after_seconds = max(1, int(retry_after_seconds + 0.999))
