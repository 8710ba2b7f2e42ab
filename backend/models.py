from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Dict, Any, List, Union
from datetime import datetime, timezone
from enum import Enum
import math
import uuid

Number = Union[int, float]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


# ============================================================================
# ENUMS (System Constants)
# ============================================================================

class UserRole(str, Enum):
    USER = "user"
    CREATOR = "creator"
    ADMIN = "admin"

class PropertyType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"

class ExtraPropertyType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    BOTH = "both"

class ValuationStatus(str, Enum):
    DRAFT = "draft"
    DONE = "done"

class Language(str, Enum):
    SV = "sv"
    EN = "en"

class AuditAction(str, Enum):
    # Auth
    USER_LOGIN_SUCCESS = "USER_LOGIN_SUCCESS"
    USER_LOGIN_FAILED = "USER_LOGIN_FAILED"

    # Creator onboarding
    ONBOARDING_CREATED = "ONBOARDING_CREATED"
    CREATOR_PROVISIONED = "CREATOR_PROVISIONED"

    # Valuations
    VALUATION_CREATED = "VALUATION_CREATED"
    VALUATION_FEATURES_UPDATED = "VALUATION_FEATURES_UPDATED"

    # Extras and offers
    EXTRAS_SEEDED = "EXTRAS_SEEDED"
    EXTRA_UPDATED = "EXTRA_UPDATED"
    OFFER_ITEM_ADDED = "OFFER_ITEM_ADDED"


class ApiModel(BaseModel):
    """Base for documents and request bodies: snake_case in Mongo, camelCase on the wire."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    def to_api(self, **kwargs) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", **kwargs)


# ============================================================================
# CORE MODELS
# ============================================================================

class User(ApiModel):
    user_id: str = Field(default_factory=_new_id)
    name: str
    email: EmailStr
    password_hash: str
    role: UserRole = UserRole.USER
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class OnboardingSession(ApiModel):
    """Pending creator signup. Expires through the TTL index on created_at."""
    onboarding_id: str = Field(default_factory=_new_id)
    name: str
    email: EmailStr
    password_hash: str
    role: UserRole = UserRole.CREATOR
    used_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)


class Features(ApiModel):
    balcony: bool = False
    renovated_kitchen: bool = False
    renovated_bathroom: bool = False
    parking: bool = False
    elevator: bool = False
    storage: bool = False
    garden: bool = False
    sea_view: bool = False
    fireplace: bool = False

    @classmethod
    def from_raw(cls, raw: Any) -> "Features":
        """Keep only recognised keys whose value is a real boolean."""
        if not isinstance(raw, dict):
            return cls()
        picked = {}
        for name, field in cls.model_fields.items():
            for key in (field.alias, name):
                if isinstance(raw.get(key), bool):
                    picked[name] = raw[key]
                    break
        return cls(**picked)


class Valuation(ApiModel):
    valuation_id: str = Field(default_factory=_new_id)
    user_id: str
    address: str
    city: str = ""
    property_type: PropertyType
    living_area: Number
    rooms: Number = 1
    year_built: Optional[int] = None
    features: Features = Field(default_factory=Features)
    estimate_sek: int
    low_sek: int
    high_sek: int
    confidence: int
    status: ValuationStatus = ValuationStatus.DONE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ExtraService(ApiModel):
    extra_id: str = Field(default_factory=_new_id)
    valuation_id: str
    # Legacy single-language (Swedish) fields
    title: str
    description: str = ""
    title_sv: str = ""
    title_en: str = ""
    description_sv: str = ""
    description_en: str = ""
    price_sek: Number
    property_type: ExtraPropertyType = ExtraPropertyType.BOTH
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class OfferItem(ApiModel):
    title: Optional[str] = None
    title_sv: Optional[str] = None
    title_en: Optional[str] = None
    price_sek: Number


class Offer(ApiModel):
    offer_id: str = Field(default_factory=_new_id)
    valuation_id: str
    user_id: str
    items: List[OfferItem] = Field(default_factory=list)
    total_sek: Number = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class AuditLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    audit_id: str = Field(default_factory=_new_id)
    action: AuditAction
    actor_id: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=_utcnow)


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

def _blank_to_none(v):
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    return v


def _plain_number(v: float):
    """4500.0 -> 4500 so prices round-trip the way clients sent them."""
    if not math.isfinite(v):
        raise ValueError("must be a finite number")
    return int(v) if float(v).is_integer() else v


class LoginRequest(ApiModel):
    email: Optional[str] = None
    password: Optional[str] = None


class TokenResponse(ApiModel):
    ok: bool = True
    token: str
    role: UserRole


class CreatorIntentRequest(ApiModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class CreateValuationRequest(ApiModel):
    address: Optional[str] = None
    city: Optional[str] = None
    property_type: Optional[PropertyType] = None
    living_area: Optional[Number] = None
    rooms: Optional[Number] = None
    year_built: Optional[int] = None
    features: Optional[Dict[str, Any]] = None

    @field_validator("address", "city", "property_type", "living_area", "rooms", "year_built", mode="before")
    @classmethod
    def _empty_as_missing(cls, v):
        return _blank_to_none(v)

    @field_validator("living_area", "rooms")
    @classmethod
    def _numbers(cls, v):
        return None if v is None else _plain_number(v)


class UpdateFeaturesRequest(ApiModel):
    features: Optional[Dict[str, Any]] = None


class ExtraServiceUpdate(ApiModel):
    title: Optional[str] = None
    description: Optional[str] = None
    title_sv: Optional[str] = None
    title_en: Optional[str] = None
    description_sv: Optional[str] = None
    description_en: Optional[str] = None
    price_sek: Optional[Number] = None
    property_type: Optional[ExtraPropertyType] = None

    @field_validator("price_sek")
    @classmethod
    def _price(cls, v):
        return None if v is None else _plain_number(v)


class OfferItemInput(ApiModel):
    title: Optional[str] = None
    title_sv: Optional[str] = None
    title_en: Optional[str] = None
    price_sek: Optional[Number] = None

    @field_validator("price_sek", mode="before")
    @classmethod
    def _blank_price(cls, v):
        return _blank_to_none(v)

    @field_validator("price_sek")
    @classmethod
    def _price(cls, v):
        return None if v is None else _plain_number(v)


class AddOfferItemRequest(ApiModel):
    valuation_id: Optional[str] = None
    item: Optional[OfferItemInput] = None
