"""Sync request schemas"""

from pydantic import BaseModel, field_validator, model_validator

from ...shared.validators import validate_date_string


class SyncRepairRequest(BaseModel):
    startDate: str
    endDate: str
    autoRepair: bool = False

    @field_validator("startDate", "endDate")
    @classmethod
    def validate_dates(cls, v):
        return validate_date_string(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.startDate > self.endDate:
            raise ValueError("startDate must not be after endDate")
        return self


class SyncRunRequest(BaseModel):
    force: bool = True
