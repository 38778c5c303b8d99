"""
Result Upload Reconciler

Folds offline-collected results back into their enrollments. Each result is
validated and applied on its own: a malformed or mismatched entry becomes a
failure detail and the rest of the batch carries on. Details keep the input
order so clients can correlate them.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from exam_sync.core.metrics import SYNC_OPERATION_LATENCY, SYNC_RESULTS_PROCESSED
from exam_sync.models.test_enrollment import SyncStatus, TestEnrollment
from exam_sync.schemas.sync import UploadResult
from .state_machine import can_transition

logger = logging.getLogger(__name__)

PACKAGE_MISMATCH_ERROR = "Invalid enrollment or package mismatch"


def describe_validation_error(error: ValidationError) -> str:
    """First problem of an UploadResult, as ``"<field> missing"`` or ``"<field> invalid: ..."``."""
    first = error.errors()[0]
    loc = first.get("loc") or ()
    if not loc:
        return "result must be an object"

    field_name = ".".join(str(part) for part in loc)
    if first.get("type") == "missing":
        return f"{field_name} missing"
    return f"{field_name} invalid: {first.get('msg')}"


class ResultUploadReconciler:
    """Applies a batch of offline results to the enrollments of one package."""

    async def reconcile(
        self,
        db: AsyncSession,
        package_id: str,
        test_center_id: Optional[str],
        results: List[Any]
    ) -> Dict[str, Any]:
        summary = {
            "packageId": package_id,
            "total": len(results),
            "success": 0,
            "failures": 0,
            "details": [],
        }

        with SYNC_OPERATION_LATENCY.labels(operation="reconcile").time():
            try:
                for raw_result in results:
                    detail = await self._process_result(db, package_id, test_center_id, raw_result)
                    summary["details"].append(detail)
                    if detail["success"]:
                        summary["success"] += 1
                    else:
                        summary["failures"] += 1

                await db.commit()

            except SQLAlchemyError as e:
                logger.error(f"Results upload for package {package_id} failed: {e}")
                await db.rollback()
                raise

        SYNC_RESULTS_PROCESSED.labels(outcome="success").inc(summary["success"])
        SYNC_RESULTS_PROCESSED.labels(outcome="failure").inc(summary["failures"])
        logger.info(
            f"Processed results upload for package {package_id} from center {test_center_id}: "
            f"{summary['success']} successful, {summary['failures']} failed"
        )

        summary["message"] = (
            f"Processed {summary['total']} results: "
            f"{summary['success']} successful, {summary['failures']} failed"
        )
        return summary

    async def _process_result(
        self,
        db: AsyncSession,
        package_id: str,
        test_center_id: Optional[str],
        raw_result: Any
    ) -> Dict[str, Any]:
        """Validate, match and apply one result; returns its detail entry."""
        raw_enrollment_id = raw_result.get("enrollmentId") if isinstance(raw_result, dict) else None

        try:
            result = UploadResult.model_validate(raw_result)
        except ValidationError as e:
            error = describe_validation_error(e)
            logger.debug(f"Rejected result for enrollment {raw_enrollment_id}: {error}")
            return {"enrollmentId": raw_enrollment_id, "success": False, "error": error}

        try:
            enrollment = await db.get(TestEnrollment, result.enrollment_id)
        except SQLAlchemyError:
            raise
        except Exception as e:
            logger.warning(f"Lookup of enrollment {result.enrollment_id} failed: {e}")
            return {
                "enrollmentId": result.enrollment_id,
                "success": False,
                "error": f"enrollmentId invalid: {e}",
            }

        if (
            enrollment is None
            or enrollment.package_id != package_id
            or (test_center_id is not None and enrollment.test_center_id != test_center_id)
        ):
            logger.warning(
                f"Result for enrollment {result.enrollment_id} does not belong to package {package_id} at center {test_center_id}"
            )
            return {
                "enrollmentId": result.enrollment_id,
                "success": False,
                "error": PACKAGE_MISMATCH_ERROR,
            }

        if not can_transition(enrollment.sync_status, SyncStatus.RESULTS_UPLOADED):
            return {
                "enrollmentId": result.enrollment_id,
                "success": False,
                "error": (
                    f"Cannot upload results for enrollment in status "
                    f"'{SyncStatus(enrollment.sync_status).value}'"
                ),
            }

        now = datetime.utcnow()
        enrollment.sync_status = SyncStatus.RESULTS_UPLOADED
        enrollment.completed = True
        if not enrollment.access_code_used:
            enrollment.access_code_used_at = now
        enrollment.access_code_used = True
        enrollment.results_uploaded_at = now
        enrollment.offline_score = result.score
        enrollment.offline_answers = result.answers
        enrollment.last_modified = now
        await db.flush()

        return {"enrollmentId": result.enrollment_id, "success": True}
