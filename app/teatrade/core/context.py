from dataclasses import dataclass

from app.teatrade.core.security import ELEVATED_ROLES, ROLE_ADMIN


@dataclass(frozen=True)
class RequestContext:
    """Authenticated caller for one request, as resolved from the ID token."""

    user_id: str
    role: str
    email: str | None
    trace_id: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES

    def owns(self, user_cognito_id: str | None) -> bool:
        return user_cognito_id is not None and user_cognito_id == self.user_id


def build_request_context(*, user_id: str, role: str, email: str | None, trace_id: str) -> RequestContext:
    return RequestContext(user_id=user_id, role=role, email=email, trace_id=trace_id)
