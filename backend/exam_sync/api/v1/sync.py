"""
API endpoints for offline test center synchronization
"""

from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, time
from typing import Optional
import logging

from exam_sync import __version__
from exam_sync.core.database import get_db
from exam_sync.core.auth import Principal, get_current_operator, ensure_center_access
from exam_sync.services.sync import (
    SyncService,
    SyncValidationError,
    get_sync_service
)
from exam_sync.schemas.sync import (
    DownloadPackageRequest,
    DownloadPackageResponse,
    ExportPackageRequest,
    ExportPackageResponse,
    UploadResultsRequest,
    UploadResultsResponse,
    SyncStatusReportResponse,
    SyncStatusUpdateRequest,
    SyncStatusUpdateResponse,
    SyncHealthResponse
)

logger = logging.getLogger(__name__)
router = APIRouter()


def parse_period_bound(value: Optional[str], name: str, end_of_day: bool = False) -> Optional[datetime]:
    """Parse a ``from``/``to`` query value; a bare date covers the whole day."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid '{name}' date: {value}"
        )
    if end_of_day and len(value) == 10:
        parsed = datetime.combine(parsed.date(), time.max)
    return parsed


def server_error(message: str, error: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": message, "error": str(error)}
    )


@router.post("/download-users", response_model=DownloadPackageResponse)
async def download_users(
    package_request: DownloadPackageRequest,
    db: AsyncSession = Depends(get_db),
    current_operator: Principal = Depends(get_current_operator),
    sync_service: SyncService = Depends(get_sync_service)
):
    """Build the offline package for one test at one test center"""

    ensure_center_access(current_operator, package_request.test_center_id)

    try:
        logger.info(
            f"Creating download package for test center {package_request.test_center_id} "
            f"for test {package_request.test_id}"
        )
        result = await sync_service.create_package(
            db, package_request.test_center_id, package_request.test_id
        )
    except Exception as e:
        logger.error(f"Error creating download package: {e}")
        raise server_error("Failed to create download package", e)

    if not result.found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=result.message)

    return DownloadPackageResponse(
        message=result.message,
        package_id=result.package_id,
        data=result.package
    )


@router.get("/download-tests/{package_id}")
async def download_tests(
    package_id: str,
    current_operator: Principal = Depends(get_current_operator)
):
    """Test data travels inside the download package; kept for older offline clients"""

    logger.info(f"Download tests requested for package {package_id}")
    return {
        "success": True,
        "packageId": package_id,
        "message": "Test data is included in the main download package",
        "note": "Use the download-users endpoint to get complete package data including tests"
    }


@router.post("/export-package", response_model=ExportPackageResponse)
async def export_package(
    export_request: ExportPackageRequest,
    current_operator: Principal = Depends(get_current_operator),
    sync_service: SyncService = Depends(get_sync_service)
):
    """Render a package into transportable files"""

    try:
        logger.info(f"Exporting package in {export_request.format} format")
        exported = sync_service.export_package(export_request.package_data, export_request.format)
    except SyncValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error exporting package: {e}")
        raise server_error("Failed to export package", e)

    return ExportPackageResponse(
        message=f"Package exported in {exported.format} format",
        format=exported.format,
        files=exported.files,
        instructions=exported.instructions
    )


@router.post("/upload-results", response_model=UploadResultsResponse)
async def upload_results(
    upload_request: UploadResultsRequest,
    db: AsyncSession = Depends(get_db),
    current_operator: Principal = Depends(get_current_operator),
    sync_service: SyncService = Depends(get_sync_service)
):
    """Reconcile offline results; individual failures are reported, not raised"""

    test_center_id = upload_request.test_center_id or current_operator.test_center_id
    if not current_operator.is_admin:
        # Results are only matched against enrollments of this center
        ensure_center_access(current_operator, test_center_id)

    try:
        logger.info(f"Processing results upload for package {upload_request.package_id}")
        summary = await sync_service.upload_results(
            db, upload_request.package_id, test_center_id, upload_request.results
        )
    except Exception as e:
        logger.error(f"Error processing results upload: {e}")
        raise server_error("Failed to process results upload", e)

    return UploadResultsResponse(
        message=summary["message"],
        package_id=summary["packageId"],
        summary={
            "total": summary["total"],
            "success": summary["success"],
            "failures": summary["failures"]
        },
        details=summary["details"]
    )


@router.get("/status/{test_center_id}", response_model=SyncStatusReportResponse)
async def get_sync_status(
    test_center_id: str,
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
    current_operator: Principal = Depends(get_current_operator),
    sync_service: SyncService = Depends(get_sync_service)
):
    """Enrollment counts per sync status and recent packages for a test center"""

    ensure_center_access(current_operator, test_center_id)

    start = parse_period_bound(date_from, "from")
    end = parse_period_bound(date_to, "to", end_of_day=True)

    try:
        report = await sync_service.get_sync_status(db, test_center_id, start, end)
    except SyncValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error getting sync status: {e}")
        raise server_error("Failed to get sync status", e)

    return SyncStatusReportResponse(data=report)


@router.put("/status", response_model=SyncStatusUpdateResponse)
async def update_sync_status(
    update_request: SyncStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_operator: Principal = Depends(get_current_operator),
    sync_service: SyncService = Depends(get_sync_service)
):
    """Operator override of enrollment sync status; ordering is not enforced"""

    try:
        logger.info(
            f"Updating sync status for {len(update_request.enrollment_ids)} enrollments "
            f"to {update_request.status.value}"
        )
        updated = await sync_service.set_status(
            db,
            update_request.enrollment_ids,
            update_request.status,
            changed_by=current_operator.id,
            reason=update_request.reason,
            test_center_id=None if current_operator.is_admin else current_operator.test_center_id
        )
    except Exception as e:
        logger.error(f"Error updating sync status: {e}")
        raise server_error("Failed to update sync status", e)

    return SyncStatusUpdateResponse(
        message=f"Updated {updated} enrollments",
        updated=updated
    )


@router.get("/health", response_model=SyncHealthResponse)
async def sync_health_check():
    """Health check endpoint for sync services"""

    return SyncHealthResponse(
        service="sync",
        status="healthy",
        timestamp=datetime.utcnow(),
        version=__version__
    )
