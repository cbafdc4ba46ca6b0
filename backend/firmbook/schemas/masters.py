"""Create payloads for reference data (firms, taxes, sales items ...)."""

from pydantic import Field, field_validator

from firmbook.schemas.common import ApiModel


class FirmCreate(ApiModel):
    name: str = Field(min_length=1)
    state: str | None = None
    gstn: str | None = None
    pan: str | None = None


class TaxRateCreate(ApiModel):
    name: str = Field(min_length=1)
    rate: float = Field(ge=0, le=100)
    is_default: bool = False


class HsnSacCodeCreate(ApiModel):
    code: str = Field(min_length=1)
    description: str = ""
    is_default: bool = False


class SalesItemCreate(ApiModel):
    name: str = Field(min_length=1)
    description: str = ""
    standard_price: float = Field(default=0, ge=0)
    default_tax_rate_id: str | None = None
    default_sac_id: str | None = None
    associated_engagement_type_id: str | None = None


class EngagementTypeCreate(ApiModel):
    name: str = Field(min_length=1)
    description: str = ""

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v
