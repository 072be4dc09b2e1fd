from pydantic import BaseModel, Field, model_validator
from typing import Optional
from uuid import UUID
from datetime import datetime


class NumberingConfigUpdate(BaseModel):
    prefix: Optional[str] = Field(None, min_length=1, max_length=10)
    padding: Optional[int] = Field(None, ge=1, le=12)

    @model_validator(mode='after')
    def validate_not_empty(self):
        if self.prefix is None and self.padding is None:
            raise ValueError('Debe proporcionar al menos un campo para actualizar (prefix o padding)')
        return self


class NumberingConfigOut(BaseModel):
    tenant_id: UUID
    document_type: str
    prefix: str
    padding: int
    last_number: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NextNumberPreview(BaseModel):
    document_type: str
    next_number: str
    next_sequence: int
