"""Voucher schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.models.voucher import DiscountType


class VoucherValidate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    amount: int = Field(..., ge=0)
    package_id: Optional[int] = None


class VoucherCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: int = Field(..., gt=0)
    min_purchase_amount: int = Field(0, ge=0)
    max_discount_amount: Optional[int] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    is_active: bool = True
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    applicable_packages: List[int] = []

    @model_validator(mode="after")
    def check_values(self) -> "VoucherCreate":
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        return self


class VoucherUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[int] = Field(None, gt=0)
    min_purchase_amount: Optional[int] = Field(None, ge=0)
    max_discount_amount: Optional[int] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    applicable_packages: Optional[List[int]] = None
