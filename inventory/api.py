"""FastAPI application exposing the authentication and book endpoints."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .auth import AuthResult, AuthService, LoginCommand, RegisterCommand
from .books import BookCatalog, CreateBookCommand
from .config import Settings, load_settings
from .database import Database
from .errors import InternalError, InventoryError
from .models import Account, Book, Role
from .passwords import PasswordHasher, password_problem
from .security import BearerTokenAuth
from .tokens import TokenService

logger = logging.getLogger("inventory.api")

MIN_PASSWORD_LENGTH = 8


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    name: Optional[str] = Field(default=None, max_length=100)

    @field_validator("password")
    @classmethod
    def _hashable_password(cls, value: str) -> str:
        problem = password_problem(value)
        if problem is not None:
            raise ValueError(problem)
        return value

    @field_validator("name", mode="before")
    @classmethod
    def _normalize_name(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        return value.strip() if isinstance(value, str) else value


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=256)


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class UserResponse(CamelModel):
    id: str
    email: str
    name: Optional[str]
    role: Role
    created_at: datetime
    updated_at: datetime


class AuthResponse(CamelModel):
    user: UserResponse
    access_token: str
    refresh_token: str


class AccessTokenResponse(CamelModel):
    access_token: str


class CurrentUserResponse(CamelModel):
    user: UserResponse


class BookFields(CamelModel):
    """Shared coercion rules for book payloads.

    Browser forms submit numbers as strings; blank strings on optional fields
    are treated as missing.
    """

    publisher: Optional[str] = Field(default=None, max_length=255)
    publish_year: Optional[int] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    image_url: Optional[str] = Field(default=None, max_length=2048)
    category: Optional[str] = Field(default=None, max_length=100)

    @field_validator(
        "publisher", "publish_year", "description", "price", "image_url", "category", mode="before"
    )
    @classmethod
    def _optional_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)


class BookCreateRequest(BookFields):
    title: str = Field(..., min_length=1, max_length=255)
    author: str = Field(..., min_length=1, max_length=255)
    isbn: str = Field(..., min_length=1, max_length=32)
    quantity: int = Field(default=0, ge=0)

    @field_validator("title", "author", "isbn")
    @classmethod
    def _require_text(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be empty")
        return stripped

    @field_validator("quantity", mode="before")
    @classmethod
    def _default_quantity(cls, value: Any) -> Any:
        return 0 if _blank_to_none(value) is None else value

    def to_command(self) -> CreateBookCommand:
        return CreateBookCommand(**self.model_dump(by_alias=False))


class BookUpdateRequest(BookFields):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    author: Optional[str] = Field(default=None, min_length=1, max_length=255)
    isbn: Optional[str] = Field(default=None, min_length=1, max_length=32)
    quantity: Optional[int] = Field(default=None, ge=0)

    @field_validator("title", "author", "isbn")
    @classmethod
    def _require_text(cls, value: Optional[str]) -> str:
        if value is None or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("quantity")
    @classmethod
    def _require_quantity(cls, value: Optional[int]) -> int:
        if value is None:
            raise ValueError("must not be null")
        return value

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=False, exclude_unset=True)


class BookResponse(CamelModel):
    id: str
    title: str
    author: str
    isbn: str
    publisher: Optional[str]
    publish_year: Optional[int]
    description: Optional[str]
    quantity: int
    price: Optional[float]
    image_url: Optional[str]
    category: Optional[str]
    available: bool
    created_at: datetime
    updated_at: datetime


def user_to_response(account: Account) -> UserResponse:
    return UserResponse(
        id=account.id,
        email=account.email,
        name=account.name,
        role=account.role,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


def auth_result_to_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        user=user_to_response(result.account),
        access_token=result.access_token,
        refresh_token=result.refresh_token,
    )


def book_to_response(book: Book) -> BookResponse:
    return BookResponse(
        id=book.id,
        title=book.title,
        author=book.author,
        isbn=book.isbn,
        publisher=book.publisher,
        publish_year=book.publish_year,
        description=book.description,
        quantity=book.quantity,
        price=book.price,
        image_url=book.image_url,
        category=book.category,
        available=book.is_available,
        created_at=book.created_at,
        updated_at=book.updated_at,
    )


def _error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    content: Dict[str, Any] = {"status": status_code, "message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def _format_validation_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    errors: List[Dict[str, str]] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors.append({"field": ".".join(location) or "body", "message": str(error.get("msg", ""))})
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InventoryError)
    async def handle_inventory_error(_: Request, exc: InventoryError):
        if isinstance(exc, InternalError):
            return _error_response(exc.status_code, InternalError.default_message)
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        logger.info("Rejected %s %s: invalid payload", request.method, request.url.path)
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            "Validation error",
            errors=_format_validation_errors(exc),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException):
        response = _error_response(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error while serving %s %s", request.method, request.url.path)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, InternalError.default_message)


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
    hasher: PasswordHasher | None = None,
    tokens: TokenService | None = None,
    initialize_database: bool = False,
) -> FastAPI:
    """Build the ASGI application.

    Services are constructed once here and shared by every request.
    """

    if settings is None:
        settings = load_settings()

    if database is None:
        database = Database(settings.database_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    if hasher is None:
        hasher = PasswordHasher(rounds=settings.bcrypt_rounds)

    if tokens is None:
        tokens = TokenService(
            settings.jwt_secret,
            access_ttl=settings.access_token_ttl,
            refresh_ttl=settings.refresh_token_ttl,
        )

    auth_service = AuthService(database, hasher, tokens)
    catalog = BookCatalog(database)
    require_account = BearerTokenAuth(tokens, database)

    app = FastAPI(
        title="Book Inventory API",
        description="Book inventory management behind bearer token authentication",
        version="1.0.0",
    )
    trusted = settings.trusted_proxies
    app.add_middleware(
        ProxyHeadersMiddleware,
        trusted_hosts=trusted if isinstance(trusted, str) else list(trusted),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["Content-Length"],
    )
    app.state.database = database
    app.state.tokens = tokens
    app.state.auth = auth_service
    app.state.catalog = catalog

    register_exception_handlers(app)

    @app.get("/")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok", "message": "Book Inventory API is running"}

    auth_router = APIRouter(prefix="/api/auth", tags=["auth"])

    @auth_router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
    async def register(payload: RegisterRequest) -> AuthResponse:
        result = await auth_service.register(
            RegisterCommand(email=str(payload.email), password=payload.password, name=payload.name)
        )
        return auth_result_to_response(result)

    @auth_router.post("/login", response_model=AuthResponse)
    async def login(payload: LoginRequest) -> AuthResponse:
        result = await auth_service.login(LoginCommand(email=payload.email, password=payload.password))
        return auth_result_to_response(result)

    @auth_router.post("/refresh", response_model=AccessTokenResponse)
    async def refresh(payload: Optional[RefreshRequest] = None) -> AccessTokenResponse:
        refresh_token = payload.refresh_token if payload is not None else None
        access_token = await auth_service.refresh(refresh_token)
        return AccessTokenResponse(access_token=access_token)

    @auth_router.get("/me", response_model=CurrentUserResponse)
    async def read_current_user(account: Account = Depends(require_account)) -> CurrentUserResponse:
        return CurrentUserResponse(user=user_to_response(account))

    books_router = APIRouter(
        prefix="/api/books",
        tags=["books"],
        dependencies=[Depends(require_account)],
    )

    @books_router.get("", response_model=List[BookResponse])
    async def list_books() -> List[BookResponse]:
        books = await catalog.list_books()
        return [book_to_response(book) for book in books]

    @books_router.get("/{book_id}", response_model=BookResponse)
    async def read_book(book_id: str) -> BookResponse:
        return book_to_response(await catalog.get_book(book_id))

    @books_router.post("", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
    async def create_book(payload: BookCreateRequest) -> BookResponse:
        return book_to_response(await catalog.create_book(payload.to_command()))

    @books_router.put("/{book_id}", response_model=BookResponse)
    async def update_book(book_id: str, payload: BookUpdateRequest) -> BookResponse:
        return book_to_response(await catalog.update_book(book_id, payload.changes()))

    @books_router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_book(book_id: str) -> Response:
        await catalog.delete_book(book_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    app.include_router(auth_router)
    app.include_router(books_router)

    return app


__all__ = ["create_app", "register_exception_handlers"]
