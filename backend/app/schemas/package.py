"""Package and question schemas used by the admin and mentor back-office."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.package import ANSWER_OPTIONS, MainCategory


def _strip_required(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


class PackageBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    duration_minutes: int = Field(100, gt=0)
    price: int = Field(0, ge=0)
    original_price: int = Field(0, ge=0)
    discount_percentage: int = Field(0, ge=0, le=100)
    requires_payment: bool = True
    is_active: bool = True
    threshold_twk: int = Field(0, ge=0)
    threshold_tiu: int = Field(0, ge=0)
    threshold_tkp: int = Field(0, ge=0)
    threshold_non_tag: int = Field(0, ge=0)

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)


class PackageCreate(PackageBase):
    @model_validator(mode="after")
    def original_price_for_discount(self) -> "PackageCreate":
        if self.discount_percentage > 0 and self.original_price <= 0:
            raise ValueError("original_price is required when a discount is set")
        return self


class PackageUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    duration_minutes: Optional[int] = Field(None, gt=0)
    price: Optional[int] = Field(None, ge=0)
    original_price: Optional[int] = Field(None, ge=0)
    discount_percentage: Optional[int] = Field(None, ge=0, le=100)
    requires_payment: Optional[bool] = None
    is_active: Optional[bool] = None
    threshold_twk: Optional[int] = Field(None, ge=0)
    threshold_tiu: Optional[int] = Field(None, ge=0)
    threshold_tkp: Optional[int] = Field(None, ge=0)
    threshold_non_tag: Optional[int] = Field(None, ge=0)

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _strip_required(v)


def _normalize_category(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if value.upper() in {c.value for c in MainCategory}:
        return value.upper()
    return value


class QuestionBase(BaseModel):
    question_text: str = Field(..., min_length=1)
    option_a: str = Field(..., min_length=1)
    option_b: str = Field(..., min_length=1)
    option_c: str = Field(..., min_length=1)
    option_d: str = Field(..., min_length=1)
    option_e: str = Field(..., min_length=1)
    points_a: int = Field(0, ge=0)
    points_b: int = Field(0, ge=0)
    points_c: int = Field(0, ge=0)
    points_d: int = Field(0, ge=0)
    points_e: int = Field(0, ge=0)
    correct_answer: str
    explanation: Optional[str] = None
    main_category: Optional[str] = None
    sub_category: Optional[str] = None
    order_index: Optional[int] = Field(None, ge=0)
    question_image_url: Optional[str] = None
    option_a_image_url: Optional[str] = None
    option_b_image_url: Optional[str] = None
    option_c_image_url: Optional[str] = None
    option_d_image_url: Optional[str] = None
    option_e_image_url: Optional[str] = None
    explanation_image_url: Optional[str] = None

    @field_validator("correct_answer")
    @classmethod
    def valid_option(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ANSWER_OPTIONS:
            raise ValueError("correct_answer must be one of A, B, C, D, E")
        return v

    @field_validator("question_text")
    @classmethod
    def text_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _strip_required(v)

    @field_validator("main_category")
    @classmethod
    def normalize_main_category(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_category(v)


class QuestionCreate(QuestionBase):
    pass


class QuestionUpdate(BaseModel):
    question_text: Optional[str] = Field(None, min_length=1)
    option_a: Optional[str] = Field(None, min_length=1)
    option_b: Optional[str] = Field(None, min_length=1)
    option_c: Optional[str] = Field(None, min_length=1)
    option_d: Optional[str] = Field(None, min_length=1)
    option_e: Optional[str] = Field(None, min_length=1)
    points_a: Optional[int] = Field(None, ge=0)
    points_b: Optional[int] = Field(None, ge=0)
    points_c: Optional[int] = Field(None, ge=0)
    points_d: Optional[int] = Field(None, ge=0)
    points_e: Optional[int] = Field(None, ge=0)
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    main_category: Optional[str] = None
    sub_category: Optional[str] = None
    order_index: Optional[int] = Field(None, ge=0)
    question_image_url: Optional[str] = None
    option_a_image_url: Optional[str] = None
    option_b_image_url: Optional[str] = None
    option_c_image_url: Optional[str] = None
    option_d_image_url: Optional[str] = None
    option_e_image_url: Optional[str] = None
    explanation_image_url: Optional[str] = None

    @field_validator("correct_answer")
    @classmethod
    def valid_option(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().upper()
        if v not in ANSWER_OPTIONS:
            raise ValueError("correct_answer must be one of A, B, C, D, E")
        return v

    @field_validator("question_text")
    @classmethod
    def text_not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _strip_required(v)

    @field_validator("main_category")
    @classmethod
    def normalize_main_category(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_category(v)
