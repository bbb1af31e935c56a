from typing import Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import validate_email

class _EmailModel(BaseModel):
    email: str = Field(..., max_length=255)

    @field_validator("email")
    @classmethod
    def email_format(cls, value: str) -> str:
        value = value.strip()
        if not validate_email(value):
            raise ValueError("Invalid email format")
        return value

class AuthRequest(_EmailModel):
    password: str = Field(..., min_length=1)

class AuthResponse(BaseModel):
    email: str
    token: str

class ResetPasswordRequest(_EmailModel):
    model_config = ConfigDict(populate_by_name=True)

    otp: str = Field(..., min_length=1, max_length=32)
    new_password: str = Field(..., alias="newPassword", min_length=6, max_length=72)

    @field_validator("otp", mode="before")
    @classmethod
    def otp_as_text(cls, value: Union[str, int]) -> Union[str, int]:
        # clients may send the code as a JSON number
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

class RegisterRequest(_EmailModel):
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6, max_length=72)

class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    name: str
    email: str
    is_account_verified: bool = Field(..., serialization_alias="isAccountVerified")
