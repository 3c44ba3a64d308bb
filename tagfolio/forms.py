"""
Request forms and their validation.

Create/update requests arrive as plain dicts (decoded JSON bodies or CLI
arguments). They are validated with pydantic; failures come back to the caller
as RequestErrors, a per-field message map, and never mutate anything.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .basename import normalize_tag_name, validate_element_name

REQUEST_FIELD = "request"


@dataclass
class RequestErrors:
    """Validation failures keyed by field name."""
    errors: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "RequestErrors":
        errors: dict[str, list[str]] = {}
        for err in exc.errors():
            key = ".".join(str(p) for p in err["loc"]) or REQUEST_FIELD
            errors.setdefault(key, []).append(err["msg"])
        return cls(errors)

    def to_dict(self) -> dict:
        return {"errors": self.errors}

    def __str__(self) -> str:
        return "; ".join(f"{k}: {', '.join(v)}" for k, v in self.errors.items())


class TagRequest(BaseModel):
    """Body of a tag create/update request."""
    model_config = ConfigDict(extra="forbid")

    name: Annotated[str, Field(min_length=1, description="Tag name; spaces allowed")]

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        return normalize_tag_name(value)


class ElementRequest(BaseModel):
    """Body of an element update request. Omitted fields stay unchanged."""
    model_config = ConfigDict(extra="forbid")

    name: Annotated[Optional[str], Field(default=None, description="New element name")]
    tags: Annotated[Optional[list[str]], Field(default=None, description="Full new tag set")]

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return validate_element_name(value)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        return sorted({normalize_tag_name(t) for t in value})


M = TypeVar("M", bound=BaseModel)


def parse_request(model: type[M], data: Any) -> Union[M, RequestErrors]:
    """Validate data against a request model, returning errors instead of raising."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        return RequestErrors.from_validation_error(e)
