from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict
from datetime import datetime, timezone
from enum import Enum


class DiscountType(str, Enum):
    """How a voucher discount is computed"""
    PERCENT = "percent"
    AMOUNT = "amount"


class SpinStatus(str, Enum):
    """Outcome of a lucky wheel spin"""
    NO_WIN = "no_win"
    GRANTED = "granted"
    COMMIT_FAILED = "commit_failed"


def _as_utc(v: datetime) -> datetime:
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


# ============================================
# VOUCHER MODELS
# ============================================

class Voucher(BaseModel):
    """Voucher as stored in the `vouchers` collection"""
    id: str
    code: str
    label: str = ""
    description: str = ""
    discount_type: DiscountType
    discount_value: float = Field(..., ge=0)
    min_order: float = Field(0, ge=0)
    expired: datetime
    is_active: bool = True
    max_usage: Optional[int] = Field(None, ge=1)
    current_usage: int = Field(0, ge=0)
    used_percent: float = Field(0, ge=0, le=100)
    only_on: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('expired')
    @classmethod
    def expired_is_utc(cls, v):
        return _as_utc(v)

    @model_validator(mode='after')
    def percent_within_range(self):
        if self.discount_type == DiscountType.PERCENT and self.discount_value > 100:
            raise ValueError('percent discount_value must be between 0 and 100')
        return self

    def is_eligible(self, now: Optional[datetime] = None) -> bool:
        """Active, not used up and not expired at `now`"""
        now = _as_utc(now) if now else datetime.now(timezone.utc)
        not_used_up = self.max_usage is None or self.current_usage < self.max_usage
        return self.is_active and not_used_up and self.expired >= now


class CreateVoucherModel(BaseModel):
    """Model for creating a voucher"""
    code: str = Field(..., min_length=1, max_length=50)
    label: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    discount_type: DiscountType
    discount_value: float = Field(..., ge=0)
    min_order: float = Field(..., ge=0)
    expired: datetime
    is_active: bool = True
    max_usage: Optional[int] = Field(None, ge=1)
    used_percent: float = Field(0, ge=0, le=100)
    only_on: Optional[str] = Field(None, max_length=200)
    note: Optional[str] = Field(None, max_length=500)

    @field_validator('code')
    @classmethod
    def normalize_code(cls, v):
        v = v.strip().upper()
        if not v:
            raise ValueError('code cannot be empty')
        return v

    @field_validator('expired')
    @classmethod
    def expired_is_utc(cls, v):
        return _as_utc(v)

    @model_validator(mode='after')
    def percent_within_range(self):
        if self.discount_type == DiscountType.PERCENT and self.discount_value > 100:
            raise ValueError('percent discount_value must be between 0 and 100')
        return self


class UpdateVoucherModel(BaseModel):
    """Model for updating a voucher (only provided fields change)"""
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    label: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[float] = Field(None, ge=0)
    min_order: Optional[float] = Field(None, ge=0)
    expired: Optional[datetime] = None
    is_active: Optional[bool] = None
    max_usage: Optional[int] = Field(None, ge=1)
    used_percent: Optional[float] = Field(None, ge=0, le=100)
    only_on: Optional[str] = Field(None, max_length=200)
    note: Optional[str] = Field(None, max_length=500)

    @field_validator('code')
    @classmethod
    def normalize_code(cls, v):
        return v.strip().upper() if v is not None else v

    @field_validator('expired')
    @classmethod
    def expired_is_utc(cls, v):
        return _as_utc(v) if v is not None else v


class OwnedVoucherResponse(BaseModel):
    """A voucher held by the user with its quantity"""
    voucher_id: str
    quantity: int
    voucher: Optional[Voucher] = None


class UserVouchersResponse(BaseModel):
    """All vouchers held by a user"""
    vouchers: Dict[str, int]
    details: List[OwnedVoucherResponse]
    total: int


# ============================================
# LUCKY WHEEL MODELS
# ============================================

class WheelSlotResponse(BaseModel):
    """One slot on the wheel"""
    voucher_id: Optional[str] = None
    option: str
    is_no_win: bool = False
    owned: bool = False


class WheelResponse(BaseModel):
    """Slots currently on the wheel"""
    slots: List[WheelSlotResponse]
    win_probability: float


class SpinResponse(BaseModel):
    """Result of a spin"""
    status: SpinStatus
    won: bool
    voucher: Optional[Voucher] = None
    quantity: Optional[int] = None
    message: str


# ============================================
# LOCATION & PRICING MODELS
# ============================================

class GPSCoordinates(BaseModel):
    """GPS coordinates model"""
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class AddressModel(BaseModel):
    """Delivery address as picked from the district/ward lists"""
    district: str = Field(..., min_length=1)
    ward: str = Field(..., min_length=1)


class CartLineModel(BaseModel):
    """One cart line"""
    product_id: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class PricingQuoteRequest(BaseModel):
    """Checkout pricing input. Give either `subtotal` or `items`."""
    subtotal: Optional[float] = Field(None, ge=0)
    items: Optional[List[CartLineModel]] = None
    voucher_id: Optional[str] = None
    coordinates: Optional[GPSCoordinates] = None
    address: Optional[AddressModel] = None
    default_shipping_fee: Optional[float] = Field(None, ge=0)

    @model_validator(mode='after')
    def subtotal_or_items(self):
        if self.subtotal is None and self.items is None:
            raise ValueError('either subtotal or items must be provided')
        return self


class PricingQuoteResponse(BaseModel):
    """Checkout pricing breakdown"""
    subtotal: float
    shipping_fee: float
    distance_km: Optional[float] = None
    shipping_fee_source: str
    discount: float
    total: float
    applied_voucher: Optional[Voucher] = None
    voucher_rejected_reason: Optional[str] = None


class ShippingFeeResponse(BaseModel):
    """Shipping fee for an address"""
    district: str
    ward: str
    shipping_fee: float
    distance_km: Optional[float] = None
    coordinates_found: bool


# ============================================
# RESPONSE MODELS
# ============================================

class SuccessResponse(BaseModel):
    """Generic success response"""
    success: bool = True
    message: str
    data: Optional[dict] = None


class ErrorResponse(BaseModel):
    """Generic error response"""
    success: bool = False
    error: str
    detail: Optional[str] = None
