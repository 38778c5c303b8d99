"""
Pydantic schemas for offline sync operations
"""

from pydantic import BaseModel, Field, AliasChoices
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Annotated, List, Dict, Any, Optional

from exam_sync.models.test_enrollment import SyncStatus

# Largest id the database INTEGER column can hold
MAX_ID = 2 ** 63 - 1


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, as offline clients send them."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class DownloadPackageRequest(CamelModel):
    """Request to build a download package for one test at one test center"""
    test_center_id: str = Field(..., min_length=1)
    test_id: int = Field(..., ge=1, le=MAX_ID)

    class Config:
        json_schema_extra = {
            "example": {
                "testCenterId": "center-001",
                "testId": 42
            }
        }


class DownloadPackageResponse(CamelModel):
    success: bool = True
    message: str
    package_id: str
    data: Dict[str, Any]


class ExportPackageRequest(CamelModel):
    package_data: Dict[str, Any]
    format: str = "json"


class ExportPackageResponse(CamelModel):
    success: bool = True
    message: str
    format: str
    files: Dict[str, str]
    instructions: List[str]


class UploadResult(CamelModel):
    """One student's offline-collected result"""
    enrollment_id: int = Field(..., ge=1, le=MAX_ID)
    student_id: int = Field(..., ge=1, le=MAX_ID, validation_alias=AliasChoices("studentId", "student_id", "userId"))
    test_id: int = Field(..., ge=1, le=MAX_ID)
    answers: Dict[str, Any]
    start_time: datetime
    end_time: datetime
    score: Optional[float] = None


class UploadResultsRequest(CamelModel):
    """Batch of offline results; items are validated one by one during reconciliation"""
    package_id: str = Field(..., min_length=1)
    test_center_id: Optional[str] = None
    results: List[Any]

    class Config:
        json_schema_extra = {
            "example": {
                "packageId": "center-001_42_1724576400000",
                "testCenterId": "center-001",
                "results": [
                    {
                        "enrollmentId": 7,
                        "studentId": 12,
                        "testId": 42,
                        "answers": {"1": "B", "2": "D"},
                        "startTime": "2025-08-25T09:00:00Z",
                        "endTime": "2025-08-25T09:30:00Z",
                        "score": 85.0
                    }
                ]
            }
        }


class UploadSummary(CamelModel):
    total: int
    success: int
    failures: int


class UploadResultDetail(CamelModel):
    enrollment_id: Optional[Any] = None
    success: bool
    error: Optional[str] = None


class UploadResultsResponse(CamelModel):
    success: bool = True
    message: str
    package_id: str
    summary: UploadSummary
    details: List[UploadResultDetail]


class RecentPackage(CamelModel):
    package_id: str
    downloaded_at: Optional[datetime] = None
    enrollments: int


class ReportPeriod(CamelModel):
    # "from" is a keyword, so both bounds go through explicit aliases
    start: datetime = Field(alias="from")
    end: datetime = Field(alias="to")


class SyncStatusReport(CamelModel):
    test_center_id: str
    period: ReportPeriod
    summary: Dict[str, int]
    total_enrollments: int
    recent_packages: List[RecentPackage]


class SyncStatusReportResponse(CamelModel):
    success: bool = True
    data: SyncStatusReport


class SyncStatusUpdateRequest(CamelModel):
    """Manual sync status override for a set of enrollments"""
    enrollment_ids: List[Annotated[int, Field(ge=1, le=MAX_ID)]] = Field(..., min_length=1)
    status: SyncStatus
    reason: Optional[str] = Field(None, max_length=500)


class SyncStatusUpdateResponse(CamelModel):
    success: bool = True
    message: str
    updated: int


class SyncHealthResponse(BaseModel):
    """Sync service health information"""
    service: str
    status: str
    timestamp: datetime
    version: str
