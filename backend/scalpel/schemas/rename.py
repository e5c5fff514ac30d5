"""Rename options sent by the client as the `options` JSON blob."""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

CASE_TYPES = ("lowercase", "UPPERCASE", "Title Case", "Sentence case")


class RenameOptions(BaseModel):
    """
    Fixed set of independent toggles. Unknown keys are ignored and every
    missing or invalid value falls back to its default, so parsing a dict
    never fails.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    base_name: str = "file"

    add_prefix: bool = False
    prefix_text: str = ""
    add_suffix: bool = False
    suffix_text: str = ""

    add_numbering: bool = False
    start_number: int = Field(default=1, ge=0)
    number_digits: int = Field(default=2, ge=1, le=32)
    number_separator: str = "_"

    find_replace: bool = False
    find_text: str = ""
    replace_text: str = ""
    match_case: bool = False

    convert_case: bool = False
    case_type: str = "lowercase"

    change_extension: bool = False
    new_extension: str = ""

    @field_validator("*", mode="wrap")
    @classmethod
    def _fallback_to_default(cls, value: Any, handler, info: ValidationInfo) -> Any:
        default = cls.model_fields[info.field_name].default
        if value is None:
            return default
        try:
            return handler(value)
        except ValidationError:
            return default

    @field_validator("base_name", "number_separator")
    @classmethod
    def _non_empty(cls, value: str, info: ValidationInfo) -> str:
        return value or cls.model_fields[info.field_name].default
