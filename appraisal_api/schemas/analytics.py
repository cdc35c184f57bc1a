from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, Optional
from datetime import datetime


class PerformanceAnalyticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    cycle_id: int
    overall_score: Optional[float] = None
    performance_band: Optional[str] = None
    section_scores: Optional[Dict[str, Any]] = None
    updated_at: Optional[datetime] = None


class DashboardStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    average_score: Optional[float] = None
    band_distribution: Dict[str, int]
