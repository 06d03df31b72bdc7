# app/middleware/jwt_middleware.py
from typing import Optional

import pydantic
from fastapi import HTTPException, Request, status
from jose import JWTError as JoseJWTError, jwt as jose_jwt
from loguru import logger

from app.config.setting import settings
from app.models.user import UserContext


class JWTAccount(pydantic.BaseModel):
    user_id: str = pydantic.Field(..., min_length=1)
    role: Optional[str] = None
    employee_id: Optional[str] = None

    def to_context(self) -> UserContext:
        return UserContext.from_identity(self.user_id, self.role or settings.DEFAULT_ROLE, self.employee_id)


class JWTMiddleware:
    def __init__(self, secret_key: str, algorithm: str = "HS256", trust_user_headers: bool = False):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.trust_user_headers = trust_user_headers

    def retrieve_details_from_token(self, token: str) -> JWTAccount:
        """
        Decode JWT token and extract caller details

        Args:
            token: JWT token string

        Returns:
            JWTAccount with user_id and optional role / employee_id

        Raises:
            ValueError: If token is invalid or payload is malformed
        """
        try:
            payload = jose_jwt.decode(
                token=token,
                key=self.secret_key,
                algorithms=[self.algorithm]
            )
            jwt_account = JWTAccount(
                user_id=str(payload["user_id"]),
                role=payload.get("role"),
                employee_id=str(payload["employee_id"]) if payload.get("employee_id") else None,
            )

        except JoseJWTError as token_decode_error:
            raise ValueError("Unable to decode JWT Token") from token_decode_error

        except pydantic.ValidationError as validation_error:
            raise ValueError("Invalid payload in token") from validation_error

        except KeyError as key_error:
            raise ValueError(f"Missing required field in token: {key_error}") from key_error

        return jwt_account

    def _account_from_headers(self, request: Request) -> Optional[JWTAccount]:
        user_id = request.headers.get("x-user-id")
        if not user_id or not user_id.strip():
            return None
        return JWTAccount(
            user_id=user_id.strip(),
            role=request.headers.get("x-user-role"),
            employee_id=request.headers.get("x-employee-id"),
        )

    async def verify_jwt_token(self, request: Request) -> JWTAccount:
        """
        Extract and verify the caller identity from the request

        Args:
            request: FastAPI request object

        Returns:
            JWTAccount with user details

        Raises:
            HTTPException: If identity is missing or invalid
        """
        try:
            authorization = request.headers.get("Authorization")
            if not authorization:
                if self.trust_user_headers:
                    account = self._account_from_headers(request)
                    if account:
                        logger.info(f"Trusted header identity for user: {account.user_id}")
                        return account
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Unauthorized: User not found. Please provide a Bearer token or authenticate.",
                    headers={"WWW-Authenticate": "Bearer"},
                )

            if not authorization.startswith("Bearer "):
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail="Invalid authorization header format. Use 'Bearer <token>'",
                    headers={"WWW-Authenticate": "Bearer"},
                )

            token = authorization.split("Bearer ")[1]
            jwt_account = self.retrieve_details_from_token(token)

            logger.info(f"JWT verified for user: {jwt_account.user_id}, role: {jwt_account.role or settings.DEFAULT_ROLE}")
            return jwt_account

        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=str(e),
                headers={"WWW-Authenticate": "Bearer"},
            )
        except Exception as e:
            logger.error(f"JWT verification error: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token verification failed",
                headers={"WWW-Authenticate": "Bearer"},
            )


# Create global middleware instance
jwt_middleware = JWTMiddleware(
    secret_key=settings.JWT_SECRET_KEY,
    algorithm=settings.JWT_ALGORITHM,
    trust_user_headers=settings.TRUST_USER_HEADERS,
)


async def get_current_user(request: Request) -> UserContext:
    """
    Dependency for routes that require an identity (401 otherwise)
    """
    account = await jwt_middleware.verify_jwt_token(request)
    return account.to_context()


async def get_optional_user(request: Request) -> Optional[UserContext]:
    """
    Dependency for routes where identity is optional; None when absent or invalid
    """
    if not request.headers.get("Authorization") and not (
        jwt_middleware.trust_user_headers and request.headers.get("x-user-id")
    ):
        return None
    try:
        account = await jwt_middleware.verify_jwt_token(request)
    except HTTPException as e:
        logger.warning(f"Ignoring invalid optional identity: {e.detail}")
        return None
    return account.to_context()
