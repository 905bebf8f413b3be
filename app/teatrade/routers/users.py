from fastapi import APIRouter, Depends

from app.teatrade.core.context import RequestContext
from app.teatrade.core.deps import require_request_context
from app.teatrade.db.session import get_db
from app.teatrade.schemas.errors import LEDGER_ERROR_RESPONSES
from app.teatrade.schemas.users import UserRegisterRequest, UserResponse
from app.teatrade.services.users import UserService

router = APIRouter(responses=LEDGER_ERROR_RESPONSES)


@router.post("/users/register", response_model=UserResponse, status_code=201)
def register_user(
    payload: UserRegisterRequest,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    return UserService(db, context).register(payload)


@router.get("/users/{user_cognito_id}", response_model=UserResponse)
def get_user(
    user_cognito_id: str,
    context: RequestContext = Depends(require_request_context),
    db=Depends(get_db),
):
    return UserService(db, context).get(user_cognito_id)
