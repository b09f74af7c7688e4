from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.v1.common import EMAIL_PATTERN, TenantResponse, UserResponse
from app.core.schemas import CamelModel
from app.db.session import get_db
from app.services import auth as auth_service

router = APIRouter(tags=["Auth"])


class LoginRequest(CamelModel):
    email: str
    password: str = Field(..., min_length=1)


class RegisterRequest(CamelModel):
    tenant_name: str = Field(..., min_length=2)
    trade_name: Optional[str] = None
    cnpj: Optional[str] = Field(default=None, pattern=r"^\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}$")
    name: str = Field(..., min_length=2)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None


class LoginResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class RegisterResponse(LoginResponse):
    tenant: TenantResponse


def _invalid_credentials() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Email ou senha invalidos",
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.post("/auth/login", response_model=LoginResponse, summary="Login JSON (frontend)")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        user, token = auth_service.authenticate(db, payload.email, payload.password)
    except auth_service.InvalidCredentials:
        raise _invalid_credentials()
    return LoginResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post(
    "/auth/token",
    summary="Login para Swagger (OAuth2PasswordBearer)",
)
def login_swagger(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Uso via Swagger UI (botao Authorize):
    - tokenUrl aponta para este endpoint.
    - Campos esperados: username (email) / password.
    """
    try:
        user, token = auth_service.authenticate(db, form_data.username, form_data.password)
    except auth_service.InvalidCredentials:
        raise _invalid_credentials()
    return {"access_token": token, "token_type": "bearer", "role": user.role}


@router.post("/auth/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    tenant, owner, token = auth_service.register_tenant(db, payload.model_dump())
    return RegisterResponse(
        access_token=token,
        user=UserResponse.model_validate(owner),
        tenant=TenantResponse.model_validate(tenant),
    )
