from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from medsupply.models.quality_control import Priority


class BulkAssign(BaseModel):
    ids: List[int] = Field(..., min_length=1)
    assigned_to: str = Field(..., min_length=1)
    priority: Optional[Priority] = None


class BulkAssignResult(BaseModel):
    requested: int
    modified: int
    modified_ids: List[int] = []
    skipped_ids: List[int] = []


class WorkloadRow(BaseModel):
    assigned_to: str
    total: int
    pending: int
    in_progress: int
    high_priority: int
    urgent: int


class ProcessingHours(BaseModel):
    completed: int
    average: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None


class InspectionStatistics(BaseModel):
    total: int
    by_status: Dict[str, int] = {}
    by_result: Dict[str, int] = {}
    by_priority: Dict[str, int] = {}
    by_type: Optional[Dict[str, int]] = None
    processing_hours: ProcessingHours
