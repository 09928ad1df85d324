from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | None = None
    trace_id: str | None = None


class DeniedErrorResponse(ApiErrorResponse):
    """Denials never carry details, so a missing row and a foreign row look the same."""

    details: None = None


class ConflictDetails(BaseModel):
    current_status: str
    allowed_transitions: list[str]
    message: str | None = None


class ConflictErrorResponse(ApiErrorResponse):
    details: ConflictDetails


class UnavailableDetails(BaseModel):
    component: str
    retryable: bool = True


class UnavailableErrorResponse(ApiErrorResponse):
    details: UnavailableDetails


class ApiValidationErrorItem(BaseModel):
    field: str | None = None
    message: str
    type: str
    loc: list[str | int] | None = None


class ApiValidationErrorDetails(BaseModel):
    message: str
    errors: list[ApiValidationErrorItem] = []
    field: str | None = None


class ApiValidationErrorResponse(ApiErrorResponse):
    details: ApiValidationErrorDetails | dict | None = None
