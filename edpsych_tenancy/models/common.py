from typing import Any

from pydantic import AnyUrl, BaseModel, ConfigDict, TypeAdapter
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Wire model: snake_case attributes, camelCase JSON keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RequestModel(ApiModel):
    """Write payload. Instances are re-validated whenever a service receives them."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        revalidate_instances="always",
    )


_url_adapter = TypeAdapter(AnyUrl)


def validate_url(value: str) -> str:
    """Reject malformed URLs but keep the caller's exact string."""
    _url_adapter.validate_python(value)
    return value


class ErrorResponse(BaseModel):
    message: str
    errors: list[dict[str, Any]] | None = None


class HealthResponse(BaseModel):
    status: str
    version: str = "0.1.0"


class ReadyResponse(BaseModel):
    status: str
    store: bool
    detail: str | None = None
