from __future__ import annotations

import logging

from app.teatrade.core import policy
from app.teatrade.core.context import RequestContext
from app.teatrade.core.error_catalog import AppError, ErrorCatalog
from app.teatrade.core.logging import log_json
from app.teatrade.db.models import User
from app.teatrade.db.transactions import run_in_transaction
from app.teatrade.repos.users import UserRepository
from app.teatrade.schemas.users import UserRegisterRequest

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db, actor: RequestContext):
        self.db = db
        self.actor = actor
        self.users = UserRepository(db)

    def register(self, payload: UserRegisterRequest) -> User:
        policy.require(self.actor, policy.USER_REGISTER, payload.user_cognito_id)
        email = str(payload.email).lower()

        def work(db) -> User:
            conflict = self.users.find_conflict(payload.user_cognito_id, email)
            if conflict is not None:
                field = "userCognitoId" if conflict.user_cognito_id == payload.user_cognito_id else "email"
                raise AppError(ErrorCatalog.CONFLICT, details={"field": field})
            return self.users.create(
                User(
                    user_cognito_id=payload.user_cognito_id,
                    name=payload.name.strip(),
                    email=email,
                    phone_number=payload.phone_number,
                )
            )

        user = run_in_transaction(self.db, work, operation="user.register")
        log_json(
            logger,
            {
                "event": "user_registered",
                "trace_id": self.actor.trace_id,
                "user_cognito_id": user.user_cognito_id,
                "registered_by": self.actor.user_id,
            },
        )
        return user

    def get(self, user_cognito_id: str) -> User:
        policy.require(self.actor, policy.USER_READ, user_cognito_id)
        user = self.users.get_by_cognito_id(user_cognito_id)
        if user is None:
            raise AppError(ErrorCatalog.USER_NOT_FOUND, details={"userCognitoId": user_cognito_id})
        return user
