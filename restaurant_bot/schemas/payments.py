"""
Payment Schemas
===============

Pydantic models for the Paystack transaction API. Only the fields we rely on
are declared; anything else Paystack returns is ignored.

Initialize response:
    {"status": true, "message": "Authorization URL created",
     "data": {"authorization_url": "...", "access_code": "...", "reference": "..."}}

Verify response:
    {"status": true, "message": "Verification successful",
     "data": {"status": "success", "reference": "...", "amount": 150000}}
"""

from typing import Optional

from pydantic import BaseModel, Field


class PaystackInitializeRequest(BaseModel):
    email: str
    amount: int = Field(..., gt=0)  # minor units (kobo)
    reference: str
    callback_url: str


class PaymentInitialization(BaseModel):
    authorization_url: str = Field(..., min_length=1)
    access_code: Optional[str] = None
    reference: Optional[str] = None


class PaystackInitializeResponse(BaseModel):
    status: bool = False
    message: Optional[str] = None
    data: PaymentInitialization


class PaymentVerification(BaseModel):
    status: str
    reference: Optional[str] = None
    amount: Optional[int] = None

    @property
    def is_successful(self) -> bool:
        return self.status == "success"


class PaystackVerifyResponse(BaseModel):
    status: bool = False
    message: Optional[str] = None
    data: PaymentVerification
