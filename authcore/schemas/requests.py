from pydantic import BaseModel, EmailStr, Field


class RegisterIn(BaseModel):
    phone_number: str = Field(..., description="Mainland mobile number, 11 digits", max_length=32)
    password: str = Field(..., description="The password of the account, at most 72 bytes", max_length=72)
    email: EmailStr | None = Field(None, max_length=255)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    display_name: str | None = Field(None, max_length=100)


class LoginIn(BaseModel):
    phone_number: str = Field(..., max_length=32)
    password: str = Field(..., max_length=72)
    otp_code: str | None = Field(
        None, description="Required once the account is flagged as risky", max_length=6
    )


class OtpRequestIn(BaseModel):
    phone_number: str = Field(..., max_length=32)


class RefreshTokenIn(BaseModel):
    refresh_token: str = Field(..., max_length=512)
