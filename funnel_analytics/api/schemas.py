from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from funnel_analytics.domain.time_range import Preset, TimeRange


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time_range: Preset = Field(Preset.LAST_7D, alias="timeRange")
    start_date: Optional[datetime] = Field(None, alias="startDate")
    end_date: Optional[datetime] = Field(None, alias="endDate")
    metric: str = "all"

    def selector(self) -> TimeRange:
        if self.time_range is Preset.CUSTOM:
            return TimeRange(preset=Preset.CUSTOM, start=self.start_date, end=self.end_date)
        return TimeRange.of(self.time_range)


class SnapshotResponse(BaseModel):
    data: Dict[str, Any]
    source: str


class RefreshResponse(BaseModel):
    data: Optional[Dict[str, Any]]
    mode: str
    blocks: List[str]
    applied: bool
    stale: bool
    coalesced: bool
    errors: Dict[str, str]


class InFlightResponse(BaseModel):
    in_flight: List[str] = Field(serialization_alias="inFlight")
