from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .utils import parse_count


class _CamelModel(BaseModel):
    # Wire format is camelCase (spotType, addOns, ...); Python side stays snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class AddOnIn(_CamelModel):
    enabled: bool = False
    locations: int = 1

    @field_validator("locations", mode="before")
    @classmethod
    def _default_locations(cls, v):
        # An explicit 0 switches the add-on off; only missing/garbage defaults to 1
        if not isinstance(v, bool) and str(v).strip() == "0":
            return 0
        return parse_count(v)


class AddOnsIn(_CamelModel):
    peak_time: AddOnIn = Field(default_factory=AddOnIn)
    screen_takeover: AddOnIn = Field(default_factory=AddOnIn)


class CommissionIn(_CamelModel):
    spot_type: int = 20
    locations: int = 1
    contract_length: int = 12
    has_referral: bool = False
    is_renewal: bool = False
    renewal_year: int = 2
    add_ons: AddOnsIn = Field(default_factory=AddOnsIn)

    @field_validator("spot_type")
    @classmethod
    def _check_spot_type(cls, v: int) -> int:
        if v not in (10, 20, 30):
            raise ValueError("spotType must be 10, 20 or 30")
        return v

    @field_validator("contract_length")
    @classmethod
    def _check_contract_length(cls, v: int) -> int:
        if v not in (6, 12):
            raise ValueError("contractLength must be 6 or 12")
        return v

    @field_validator("renewal_year")
    @classmethod
    def _check_renewal_year(cls, v: int) -> int:
        if v not in (2, 3, 4):
            raise ValueError("renewalYear must be 2, 3 or 4")
        return v

    @field_validator("locations", mode="before")
    @classmethod
    def _default_locations(cls, v):
        return parse_count(v)


class CustomerData(_CamelModel):
    business_name: str = ""
    date_proposal_signed: str = ""
    collected_amount: str = ""

    @property
    def has_any(self) -> bool:
        return bool(self.business_name or self.date_proposal_signed or self.collected_amount)


class Calculations(_CamelModel):
    """Report figures, already formatted as strings ("1620.00", "15.0")."""
    monthly_rate_per_location: str = "0.00"
    total_monthly_value: str = "0.00"
    total_contract_value: str = "0.00"
    commission_percentage: str = "0.0"
    initial_commission: str = "0.00"
    monthly_residual: str = "0.00"
    total_commission: str = "0.00"
    base_monthly_rate: str = "0.00"
    add_on_monthly_rate: str = "0.00"


class CalculationData(CommissionIn):
    """Inputs echoed back alongside the formatted figures and customer info."""
    customer_data: CustomerData = Field(default_factory=CustomerData)
    calculations: Calculations = Field(default_factory=Calculations)


class ReportRequest(_CamelModel):
    email: str = ""
    calculation_data: CalculationData = Field(default_factory=CalculationData)
