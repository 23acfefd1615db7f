# greencandle/schemas.py
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from greencandle.services.status import CallStatus

CallType = Literal["buy", "sell"]
TradeType = Literal["intraday", "positional"]
PlanTier = Literal["Regular", "Premium", "International"]


class TargetIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # existing target id, so a replaced list keeps references to unchanged targets
    id: Optional[str] = Field(default=None, alias="_id", pattern=r"^[0-9a-fA-F]{24}$")
    price: float = Field(gt=0)
    order: Optional[int] = None
    isAchieved: bool = False


class CallCreateReq(BaseModel):
    commodity: str = Field(min_length=1)
    customCommodity: Optional[str] = None
    type: CallType
    entryPrice: float = Field(gt=0)
    targetPrices: List[TargetIn] = Field(min_length=1)
    stopLoss: Optional[float] = Field(default=None, gt=0)
    analysis: Optional[str] = None
    # "YYYY-MM-DD" (any time/zone suffix is ignored); `date` is the older field name
    tradingDay: Optional[str] = None
    date: Optional[str] = None
    status: Optional[CallStatus] = None
    tradeType: Optional[TradeType] = None

    @model_validator(mode="after")
    def _needs_day(self):
        if not (self.tradingDay or self.date):
            raise ValueError("tradingDay is required")
        return self


class CallUpdateReq(BaseModel):
    commodity: Optional[str] = Field(default=None, min_length=1)
    customCommodity: Optional[str] = None
    type: Optional[CallType] = None
    entryPrice: Optional[float] = Field(default=None, gt=0)
    targetPrices: Optional[List[TargetIn]] = Field(default=None, min_length=1)
    stopLoss: Optional[float] = Field(default=None, gt=0)
    analysis: Optional[str] = None
    tradingDay: Optional[str] = None
    date: Optional[str] = None
    status: Optional[CallStatus] = None
    tradeType: Optional[TradeType] = None


class TargetStatusReq(BaseModel):
    isAchieved: bool

    # older clients send the misspelled key
    @model_validator(mode="before")
    @classmethod
    def _legacy_key(cls, data):
        if isinstance(data, dict) and "isAchieved" not in data and "isAcheived" in data:
            data = {**data, "isAchieved": data["isAcheived"]}
        return data


class UserCreateReq(BaseModel):
    fullName: Optional[str] = Field(default=None, max_length=100)
    mobile: str = Field(pattern=r"^[0-9]{10}$")
    city: Optional[str] = Field(default=None, max_length=100)
    isActive: bool = True
    accessDays: Optional[int] = Field(default=None, ge=1, le=3650)
    isUnlimited: bool = False
    planTier: Optional[PlanTier] = None
    maxTargetsVisible: Optional[int] = Field(default=None, ge=1)

    @field_validator("mobile", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _one_duration(self):
        if self.isUnlimited and self.accessDays:
            raise ValueError("Cannot set both accessDays and isUnlimited")
        return self


class UserUpdateReq(BaseModel):
    fullName: Optional[str] = Field(default=None, max_length=100)
    mobile: Optional[str] = Field(default=None, pattern=r"^[0-9]{10}$")
    city: Optional[str] = Field(default=None, max_length=100)
    isActive: Optional[bool] = None
    accessDays: Optional[int] = Field(default=None, ge=1, le=3650)
    isUnlimited: Optional[bool] = None
    extendSubscription: bool = False
    planTier: Optional[PlanTier] = None
    maxTargetsVisible: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_fields_set - {"extendSubscription"}:
            raise ValueError("At least one field must be provided for update")
        return self


class UserStatusReq(BaseModel):
    isActive: bool


class ActivateSubscriptionReq(BaseModel):
    plan: Literal["daily", "weekly"]
    planTier: Optional[PlanTier] = None


class HealthResponse(BaseModel):
    status: str
    env: str
    version: str
    db_connected: bool
