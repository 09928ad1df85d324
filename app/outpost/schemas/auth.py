from pydantic import BaseModel, model_validator


class LoginRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {"username_or_email": "jdoe", "password": "Sup3rSecret!"},
            ]
        }
    }

    username_or_email: str | None = None
    email: str | None = None
    password: str

    @model_validator(mode="after")
    def ensure_identifier(self):
        if not self.email and not self.username_or_email:
            raise ValueError("email or username_or_email is required")
        return self


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    trace_id: str


class PrincipalOut(BaseModel):
    id: str
    role: str
    home_location_id: str | None = None
    home_region_id: str | None = None
    active: bool


class MeResponse(BaseModel):
    principal: PrincipalOut
    username: str
    email: str
    full_name: str | None = None
    trace_id: str
