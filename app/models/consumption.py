from datetime import datetime
from typing import Optional, Any, Dict
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum


class ResourceType(str, Enum):
    ELECTRICITY = "electricity"
    WATER = "water"
    GAS = "gas"


class ConsumptionReadingCreate(BaseModel):
    """Monthly (or weekly, in advanced mode) meter submission."""

    model_config = ConfigDict(allow_inf_nan=False)

    electricity: float = 0.0  # kWh
    water: float = 0.0  # m³
    gas: float = 0.0  # m³
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1970, le=9999)
    reading_date: Optional[datetime] = None
    is_advanced_mode: bool = False
    week_number: Optional[int] = Field(default=None, ge=1, le=5)

    @field_validator("electricity", "water", "gas", mode="before")
    @classmethod
    def blank_is_zero(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return 0.0
        return value

    @model_validator(mode="after")
    def default_reading_date(self):
        if self.reading_date is None:
            self.reading_date = datetime(self.year, self.month, 1)
        return self


class ConsumptionReading(BaseModel):
    id: str
    user_id: str
    electricity: float = 0.0
    water: float = 0.0
    gas: float = 0.0
    month: int
    year: int
    reading_date: datetime
    is_advanced_mode: bool = False
    week_number: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def amount(self, resource_type: ResourceType) -> float:
        return float(getattr(self, ResourceType(resource_type).value) or 0.0)


class Prediction(BaseModel):
    id: str
    user_id: str
    type: ResourceType
    predicted_amount: float
    confidence: float
    prediction_date: datetime
    actual_amount: Optional[float] = None
    created_at: Optional[datetime] = None


class PredictionRequest(BaseModel):
    type: ResourceType


def from_mongo(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a Mongo document with `_id` turned into a string `id`."""
    out = dict(doc)
    if "_id" in out:
        out["id"] = str(out.pop("_id"))
    return out
