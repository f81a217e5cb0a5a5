"""
Authentication schemas for request/response validation.

Field names on the wire are camelCase (``userId``) so the existing web front
end keeps working; Python code uses the snake_case attribute names.
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class SignupRequest(BaseModel):
    """
    Schema for user registration requests.

    Validates email format and minimum password length.
    """

    email: EmailStr = Field(
        ...,
        description="User email address",
        examples=["user@example.com"],
    )
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User password (8-128 characters)",
        examples=["SecurePass123!"],
    )


class LoginRequest(BaseModel):
    """Schema for user login requests."""

    # Plain str: a malformed address must fail like any other bad credential.
    email: str = Field(
        ...,
        min_length=1,
        max_length=320,
        description="User email address",
        examples=["user@example.com"],
    )
    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="User password",
        examples=["SecurePass123!"],
    )


class SignupResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(default="User created")
    user_id: UUID = Field(..., alias="userId", description="Created user id")


class LoginResponse(BaseModel):
    """
    Schema for successful login.

    ``token`` goes in the ``Authorization: Bearer`` header of later requests.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "userId": "123e4567-e89b-12d3-a456-426614174000",
                "token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
            }
        },
    )

    user_id: UUID = Field(..., alias="userId", description="Authenticated user id")
    token: str = Field(..., description="JWT bearer token, valid for 24 hours")


class MessageResponse(BaseModel):
    """Plain acknowledgement returned by mutation endpoints."""

    message: str = Field(..., examples=["Sauce deleted"])
