"""Leave router: applications, approvals, balances and the leave calendar."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_actor, get_now
from app.models.leave import (
    ALL_COUNTRIES,
    HOURS_PER_LEAVE_DAY,
    LEAVE_TASK_ID,
    Holiday,
    LeaveBalance,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
)
from app.models.timesheet import TimesheetEntry
from app.models.user import OrgUser
from app.schemas.leave import LeaveApply, LeaveDecision, LeaveTypeResponse
from app.services.audit import log_action
from app.services.dates import business_days, iter_days
from app.services.iam import Actor, get_user_or_404
from app.services.manager_scope import can_act_on, get_report_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leave", tags=["Leave"])


# ── Helpers ──


def _request_to_dict(r: LeaveRequest, lt: Optional[LeaveType] = None, user: Optional[OrgUser] = None) -> dict:
    d = {
        "id": str(r.id),
        "user_id": str(r.user_id),
        "leave_type_id": str(r.leave_type_id),
        "start_date": str(r.start_date),
        "end_date": str(r.end_date),
        "reason": r.reason,
        "status": r.status,
        "decided_by": str(r.decided_by) if r.decided_by else None,
        "decided_at": r.decided_at.isoformat() if r.decided_at else None,
        "created_at": r.created_at.isoformat() if r.created_at else None,
    }
    if lt is not None:
        d["leave_type"] = {"name": lt.name, "code": lt.code, "paid": lt.paid}
    if user is not None:
        d["user_name"] = user.name
        d["user_email"] = user.email
    return d


def _holiday_dates(db: Session, country: str, start: date, end: date) -> set[date]:
    rows = db.query(Holiday.date).filter(
        Holiday.date >= start,
        Holiday.date <= end,
        or_(Holiday.country == country, Holiday.country == ALL_COUNTRIES),
    ).all()
    return {r[0] for r in rows}


def _require_country(user: OrgUser) -> str:
    if not user.country:
        raise HTTPException(409, "Country not set. Ask an admin to set your country first.")
    return user.country


# ── Types / apply ──


@router.get("/types")
def list_types(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    rows = db.query(LeaveType).order_by(LeaveType.name).all()
    return {"types": [LeaveTypeResponse.model_validate(r).model_dump(mode="json") for r in rows]}


@router.post("/apply")
def apply(
    body: LeaveApply,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    _require_country(actor.user)
    if body.end_date < body.start_date:
        raise HTTPException(400, "endDate must not be before startDate")

    lt = db.query(LeaveType).filter(LeaveType.id == body.leave_type_id).first()
    if not lt:
        raise HTTPException(404, "Leave type not found")

    req = LeaveRequest(
        user_id=actor.id,
        leave_type_id=lt.id,
        start_date=body.start_date,
        end_date=body.end_date,
        reason=body.reason,
        status=LeaveStatus.PENDING.value,
    )
    db.add(req)
    db.commit()
    db.refresh(req)
    logger.info("Leave request %s filed by %s", req.id, actor.id)
    return {"ok": True, "request": _request_to_dict(req, lt)}


# ── Requests ──


@router.get("/requests")
def my_requests(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(LeaveRequest, LeaveType)
        .join(LeaveType, LeaveType.id == LeaveRequest.leave_type_id)
        .filter(LeaveRequest.user_id == actor.id)
        .order_by(LeaveRequest.start_date.desc())
        .all()
    )
    return {"requests": [_request_to_dict(r, lt) for r, lt in rows]}


@router.get("/pending")
def pending_requests(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    q = (
        db.query(LeaveRequest, LeaveType, OrgUser)
        .join(LeaveType, LeaveType.id == LeaveRequest.leave_type_id)
        .join(OrgUser, OrgUser.id == LeaveRequest.user_id)
        .filter(LeaveRequest.status == LeaveStatus.PENDING.value)
    )
    if not actor.is_owner:
        if not actor.is_manager:
            raise HTTPException(403, "Only owners and managers can review leave")
        report_ids = get_report_ids(db, actor.id)
        if not report_ids:
            return {"requests": []}
        q = q.filter(LeaveRequest.user_id.in_(report_ids))

    rows = q.order_by(LeaveRequest.start_date).all()
    return {"requests": [_request_to_dict(r, lt, u) for r, lt, u in rows]}


# ── Decision ──


@router.post("/approve")
def decide(
    body: LeaveDecision,
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    req = db.query(LeaveRequest).filter(LeaveRequest.id == body.request_id).first()
    if not req:
        raise HTTPException(404, "Request not found")
    if not can_act_on(db, actor, req.user_id):
        raise HTTPException(403, "Not authorized to act on this request")
    if req.status != LeaveStatus.PENDING.value:
        raise HTTPException(409, {"error": "Request already decided", "status": req.status})

    approving = body.action == "APPROVE"
    subject = get_user_or_404(db, req.user_id)
    if approving and not subject.country:
        raise HTTPException(409, "Employee country not set. Cannot approve leave.")

    new_status = LeaveStatus.APPROVED.value if approving else LeaveStatus.REJECTED.value
    updated = (
        db.query(LeaveRequest)
        .filter(LeaveRequest.id == req.id, LeaveRequest.status == LeaveStatus.PENDING.value)
        .update(
            {LeaveRequest.status: new_status, LeaveRequest.decided_by: actor.id, LeaveRequest.decided_at: now},
            synchronize_session=False,
        )
    )
    db.commit()
    if updated == 0:
        db.refresh(req)
        raise HTTPException(409, {"error": "Request already decided", "status": req.status})

    result = {"ok": True, "status": new_status}
    if approving:
        result.update(_apply_approved_leave(db, req, subject))

    log_action(db, actor.id, f"leave.{new_status.lower()}", "leave_request", req.id, result)
    return result


def _apply_approved_leave(db: Session, req: LeaveRequest, subject: OrgUser) -> dict:
    """Charge the balance and fill the timesheet with 8h leave rows per working day."""
    holidays = _holiday_dates(db, subject.country, req.start_date, req.end_date)
    days = business_days(req.start_date, req.end_date, holidays)
    hours = Decimal(len(days) * HOURS_PER_LEAVE_DAY)

    year = req.start_date.year
    balance = db.query(LeaveBalance).filter(
        LeaveBalance.user_id == req.user_id,
        LeaveBalance.leave_type_id == req.leave_type_id,
        LeaveBalance.year == year,
    ).first()
    if balance is None:
        balance = LeaveBalance(
            user_id=req.user_id,
            leave_type_id=req.leave_type_id,
            year=year,
            accrued_hours=Decimal(0),
            used_hours=Decimal(0),
            balance_hours=Decimal(0),
        )
        db.add(balance)
    balance.used_hours = Decimal(balance.used_hours or 0) + hours
    balance.balance_hours = Decimal(balance.balance_hours or 0) - hours

    lt = db.query(LeaveType).filter(LeaveType.id == req.leave_type_id).first()
    leave_code = lt.code if lt else LEAVE_TASK_ID

    existing = {
        e.date: e
        for e in db.query(TimesheetEntry).filter(
            TimesheetEntry.user_id == req.user_id,
            TimesheetEntry.task_id == LEAVE_TASK_ID,
            TimesheetEntry.date >= req.start_date,
            TimesheetEntry.date <= req.end_date,
        ).all()
    }
    for d in days:
        entry = existing.get(d)
        if entry is None:
            entry = TimesheetEntry(user_id=req.user_id, task_id=LEAVE_TASK_ID, date=d)
            db.add(entry)
        entry.task_name = leave_code
        entry.tracked_hours = HOURS_PER_LEAVE_DAY
        entry.tracked_note = "AUTO: LEAVE"
        entry.estimate_locked = True
    db.commit()

    logger.info("Leave %s approved: %s working days for %s", req.id, len(days), req.user_id)
    return {"working_days": len(days), "hours_deducted": float(hours)}


# ── Balances / calendar ──


@router.get("/balances")
def balances(
    year: Optional[int] = Query(None),
    actor: Actor = Depends(get_actor),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
):
    _require_country(actor.user)
    year = year or now.year

    rows = (
        db.query(LeaveBalance, LeaveType)
        .join(LeaveType, LeaveType.id == LeaveBalance.leave_type_id)
        .filter(LeaveBalance.user_id == actor.id, LeaveBalance.year == year)
        .order_by(LeaveType.name)
        .all()
    )
    return {
        "year": year,
        "balances": [
            {
                "leave_type_id": str(lt.id),
                "code": lt.code,
                "name": lt.name,
                "paid": lt.paid,
                "accrued_hours": float(b.accrued_hours or 0),
                "used_hours": float(b.used_hours or 0),
                "balance_hours": float(b.balance_hours or 0),
            }
            for b, lt in rows
        ],
    }


@router.get("/calendar")
def calendar(
    start: date = Query(...),
    end: date = Query(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    if end < start:
        raise HTTPException(400, "end must not be before start")

    countries = [ALL_COUNTRIES]
    if actor.user.country:
        countries.append(actor.user.country)
    holidays = (
        db.query(Holiday)
        .filter(Holiday.date >= start, Holiday.date <= end, Holiday.country.in_(countries))
        .order_by(Holiday.date)
        .all()
    )

    requests = (
        db.query(LeaveRequest, LeaveType)
        .join(LeaveType, LeaveType.id == LeaveRequest.leave_type_id)
        .filter(
            LeaveRequest.user_id == actor.id,
            LeaveRequest.status.in_([LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value]),
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        .all()
    )
    leave_days = []
    for r, lt in requests:
        for d in iter_days(max(r.start_date, start), min(r.end_date, end)):
            if d.weekday() < 5:
                leave_days.append({"date": str(d), "code": lt.code, "status": r.status, "request_id": str(r.id)})

    return {
        "holidays": [{"date": str(h.date), "name": h.name, "country": h.country} for h in holidays],
        "leave": sorted(leave_days, key=lambda x: x["date"]),
    }
