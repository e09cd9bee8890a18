"""Payment schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class PaymentCreate(BaseModel):
    package_id: int
    voucher_code: Optional[str] = Field(None, max_length=50)
    payment_method: str = Field("midtrans", max_length=50)
