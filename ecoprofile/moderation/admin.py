"""
Ecological Profile Submissions - Staff Endpoints

Staff dashboard surface for the census moderation workflow:
1. GET    /api/v1/ecological/submissions               - List (filter, search, sort)
2. GET    /api/v1/ecological/submissions/{id}          - Detail
3. POST   /api/v1/ecological/submissions/{id}/review   - begin_review / approve / reject
4. DELETE /api/v1/ecological/submissions/{id}          - Soft-delete
5. POST   /api/v1/ecological/submissions/{id}/recover  - Recover
6. GET    /api/v1/ecological/export                    - CSV export (submissions or members view)
7. GET    /api/v1/ecological/template                  - Blank import template
8. POST   /api/v1/ecological/import/preview            - Validate CSV without writing
9. POST   /api/v1/ecological/import                    - Import CSV as pending submissions

Security: Requires X-Admin-API-Key header. The acting staff member is
identified by X-Staff-Name and X-Staff-Role.

Version: ecological_admin_v1
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import Response

from ecoprofile import config
from ecoprofile.audit import build_audit_sink
from ecoprofile.csv_codec import decode_with_stats, export_bytes, generate_template, validate
from ecoprofile.errors import (
    AuthorizationError,
    EcoProfileError,
    NotFoundError,
    PersistenceError,
    TransitionError,
    ValidationError,
)
from ecoprofile.persistence import build_persistence

from .models import (
    ActorType,
    ImportRequest,
    LifecycleResponse,
    ReviewRequest,
    ReviewResponse,
    StaffActor,
    SubmissionListResponse,
)
from .orchestrator import ModerationOrchestrator
from .permissions import ADMIN
from .state_machine import allowed_actions

logger = logging.getLogger(__name__)


# =============================================
# Router Setup
# =============================================

router = APIRouter(
    prefix="/api/v1/ecological",
    tags=["admin", "ecological"],
)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


# =============================================
# Dependencies
# =============================================

def verify_admin_key(x_admin_api_key: str = Header(None, alias="X-Admin-API-Key")) -> str:
    """
    Verify admin API key from header.

    Raises 401 if missing or invalid.
    """
    expected_key = config.ADMIN_API_KEY

    if not expected_key:
        # Fail open in dev if ADMIN_API_KEY not set
        return "dev_mode"

    if not x_admin_api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing X-Admin-API-Key header"
        )

    if x_admin_api_key != expected_key:
        raise HTTPException(
            status_code=401,
            detail="Invalid admin API key"
        )

    return x_admin_api_key


def get_staff_actor(
    x_staff_name: str = Header(None, alias="X-Staff-Name"),
    x_staff_role: str = Header(None, alias="X-Staff-Role"),
) -> StaffActor:
    """Acting staff member. Permission checks happen in the orchestrator."""
    if not x_staff_name or not x_staff_name.strip():
        raise HTTPException(status_code=401, detail="Missing X-Staff-Name header")
    role = (x_staff_role or "").strip().lower() or None
    return StaffActor(
        full_name=x_staff_name.strip(),
        role=role,
        actor_type=ActorType.ADMIN if role == ADMIN else ActorType.STAFF,
    )


_orchestrator: Optional[ModerationOrchestrator] = None


def get_orchestrator() -> ModerationOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ModerationOrchestrator(build_persistence(), build_audit_sink())
    return _orchestrator


def to_http_error(e: EcoProfileError) -> HTTPException:
    """Map the domain error taxonomy onto HTTP status codes."""
    if isinstance(e, ValidationError):
        detail = {"error": e.message, "field": e.field, "row": e.row}
        return HTTPException(status_code=400, detail=detail)
    if isinstance(e, AuthorizationError):
        return HTTPException(status_code=403, detail=e.message)
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, TransitionError):
        detail = {"error": e.message, "current_status": e.current_status, "action": e.action}
        return HTTPException(status_code=409, detail=detail)
    if isinstance(e, PersistenceError):
        logger.error(f"Persistence failure ({e.operation}): {e.message}")
        return HTTPException(status_code=502, detail=f"Data store error: {e.message}")
    return HTTPException(status_code=500, detail=e.message)


def _csv_response(text: str, filename: str) -> Response:
    return Response(
        content=export_bytes(text),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# =============================================
# Submissions
# =============================================

@router.get("/submissions", response_model=SubmissionListResponse)
def list_submissions(
    status: str = Query("all", description="all, deleted, pending, under_review, approved, rejected"),
    include_deleted: bool = Query(False),
    search: Optional[str] = Query(None),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    _: str = Depends(verify_admin_key),
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
):
    try:
        rows = orchestrator.list_submissions(status, include_deleted, search, sort_by, order == "desc")
        return SubmissionListResponse(
            total=len(rows),
            pending=orchestrator.pending_count(),
            submissions=rows,
        )
    except EcoProfileError as e:
        raise to_http_error(e)


@router.get("/submissions/{submission_id}")
def get_submission(
    submission_id: str,
    _: str = Depends(verify_admin_key),
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
):
    try:
        submission = orchestrator.get_submission(submission_id)
    except EcoProfileError as e:
        raise to_http_error(e)
    return {
        "status": "success",
        "submission": submission.model_dump(mode="json"),
        "allowed_actions": [a.value for a in allowed_actions(submission.status)],
    }


@router.post("/submissions/{submission_id}/review", response_model=ReviewResponse)
def review_submission(
    submission_id: str,
    request: ReviewRequest,
    _: str = Depends(verify_admin_key),
    actor: StaffActor = Depends(get_staff_actor),
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
):
    """
    Move a submission through moderation.

    Approval also merges the submission into its canonical household.
    household_synced is False when some member writes failed; the
    approval itself still stands.
    """
    try:
        outcome = orchestrator.review(
            submission_id,
            request.decision,
            actor,
            reason=request.reason,
            notes=request.notes,
        )
    except EcoProfileError as e:
        raise to_http_error(e)

    return ReviewResponse(
        submission=outcome.submission,
        household_number=outcome.submission.household_number,
        household_synced=outcome.fully_synced,
        warnings=[w.message for w in outcome.warnings],
    )


@router.delete("/submissions/{submission_id}", response_model=LifecycleResponse)
def delete_submission(
    submission_id: str,
    _: str = Depends(verify_admin_key),
    actor: StaffActor = Depends(get_staff_actor),
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
):
    try:
        outcome = orchestrator.remove(submission_id, actor)
    except EcoProfileError as e:
        raise to_http_error(e)
    return LifecycleResponse(
        submission=outcome.submission,
        changed=outcome.changed,
        workflow_status=outcome.submission.status,
    )


@router.post("/submissions/{submission_id}/recover", response_model=LifecycleResponse)
def recover_submission(
    submission_id: str,
    _: str = Depends(verify_admin_key),
    actor: StaffActor = Depends(get_staff_actor),
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
):
    try:
        outcome = orchestrator.recover(submission_id, actor)
    except EcoProfileError as e:
        raise to_http_error(e)
    return LifecycleResponse(
        submission=outcome.submission,
        changed=outcome.changed,
        workflow_status=outcome.submission.status,
    )


# =============================================
# CSV interchange
# =============================================

@router.get("/export")
def export_submissions(
    view: str = Query("submissions", description="submissions or members"),
    status: str = Query("all"),
    include_deleted: bool = Query(False),
    search: Optional[str] = Query(None),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    _: str = Depends(verify_admin_key),
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
):
    """UTF-8 CSV with byte-order mark so spreadsheet tools detect the encoding."""
    try:
        text = orchestrator.export_csv(view, status, include_deleted, search, sort_by, order == "desc")
    except EcoProfileError as e:
        raise to_http_error(e)
    today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    prefix = "ecological_members" if view == "members" else "ecological_profiles"
    return _csv_response(text, f"{prefix}_{today}.csv")


@router.get("/template")
def download_template(_: str = Depends(verify_admin_key)):
    return _csv_response(generate_template(), "ecological_profile_template.csv")


@router.post("/import/preview")
def preview_import(
    request: ImportRequest,
    _: str = Depends(verify_admin_key),
):
    """Decode and validate without writing anything."""
    try:
        decoded = decode_with_stats(request.csv)
    except EcoProfileError as e:
        raise to_http_error(e)
    result = validate(decoded.rows)
    return {
        "status": "success",
        "valid": result.valid,
        "row_count": len(decoded.rows),
        "dropped_records": decoded.dropped,
        "errors": [e.model_dump() for e in result.errors],
        "warnings": [w.model_dump() for w in result.warnings],
        "preview": [s.model_dump(mode="json", warnings=False) for s in result.data],
    }


@router.post("/import")
def import_submissions(
    request: ImportRequest,
    _: str = Depends(verify_admin_key),
    actor: StaffActor = Depends(get_staff_actor),
    orchestrator: ModerationOrchestrator = Depends(get_orchestrator),
):
    """Insert every valid row as a pending submission. Bad rows are reported, not fatal."""
    try:
        result = orchestrator.import_csv(request.csv, actor)
    except EcoProfileError as e:
        raise to_http_error(e)
    return {"status": "success", **result.to_dict()}
