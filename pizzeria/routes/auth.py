import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from pizzeria.deps import get_user_repository
from pizzeria.errors import ValidationError
from pizzeria.models.user import UserRepository
from pizzeria.schemas import LoginBody, SignupBody
from pizzeria.security import create_token, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup")
async def signup(body: SignupBody, users: UserRepository = Depends(get_user_repository)) -> JSONResponse:
    email = body.email.strip().lower()
    if await users.find_by_email(email) is not None:
        raise ValidationError("Email already in use.")
    user = await users.create(
        name=body.name,
        email=email,
        address=body.address,
        password_hash=hash_password(body.password),
        role=body.role,
    )
    logger.info("Signed up user id=%s role=%s", user.id, user.role)
    return JSONResponse(status_code=201, content={"message": "Signup successful", "role": user.role})


@router.post("/login")
async def login(body: LoginBody, users: UserRepository = Depends(get_user_repository)) -> JSONResponse:
    user = await users.find_by_email(body.email.strip().lower())
    if user is None or not verify_password(body.password, user.password):
        raise ValidationError("Invalid credentials")
    return JSONResponse(
        status_code=200,
        content={
            "token": create_token(user.id),
            "user": {
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "address": user.address,
                "role": user.role,
            },
        },
    )
