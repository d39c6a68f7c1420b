from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from padel_alert.api.deps import get_owner_id, get_rule_storage
from padel_alert.api.schemas import RuleRequest, RuleResponse
from padel_alert.models import ActivityCategory, Rule
from padel_alert.storage.rule_storage import EDITABLE_FIELDS, RuleStorage

router = APIRouter(prefix="/api/rules", tags=["rules"])


def _to_response(rule: Rule, next_run: Optional[datetime] = None) -> RuleResponse:
    return RuleResponse(
        id=rule.id,
        user_id=rule.user_id,
        name=rule.name,
        category=rule.category.value if rule.category else None,
        club_ids=list(rule.club_ids or []),
        min_ranking=rule.min_ranking,
        max_ranking=rule.max_ranking,
        start_date=rule.start_date,
        end_date=rule.end_date,
        title_contains=rule.title_contains,
        active=rule.active,
        last_checked=rule.last_checked,
        last_notification=rule.last_notification,
        next_run=next_run,
        created_at=rule.created_at,
        updated_at=rule.updated_at,
    )


def _owned_rule(storage: RuleStorage, rule_id: str, owner_id: str) -> Rule:
    rule = storage.get_rule(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    if rule.user_id != owner_id:
        raise HTTPException(status_code=403, detail="Not authorized to access this rule")
    return rule


def _apply(rule: Rule, body: RuleRequest) -> None:
    rule.name = body.name
    rule.category = ActivityCategory(body.category) if body.category else None
    rule.club_ids = list(body.club_ids)
    rule.min_ranking = body.min_ranking
    rule.max_ranking = body.max_ranking
    rule.start_date = body.start_date
    rule.end_date = body.end_date
    rule.title_contains = body.title_contains or None
    rule.active = body.active


def _schedule_now(storage: RuleStorage, rule_id: str) -> Optional[datetime]:
    now = datetime.now()
    try:
        storage.schedule_rule(rule_id, now)
    except SQLAlchemyError as e:
        # the rule is saved; it just waits for the next scheduling write
        logger.error(f"Failed to schedule rule {rule_id}: {e}")
        return None
    return now


@router.get("")
def list_rules(
    owner_id: str = Depends(get_owner_id),
    storage: RuleStorage = Depends(get_rule_storage),
):
    rules = storage.list_rules(owner_id)
    return {"items": [_to_response(r, storage.get_next_run(r.id)) for r in rules]}


@router.get("/{rule_id}", response_model=RuleResponse)
def get_rule(
    rule_id: str,
    owner_id: str = Depends(get_owner_id),
    storage: RuleStorage = Depends(get_rule_storage),
):
    rule = _owned_rule(storage, rule_id, owner_id)
    return _to_response(rule, storage.get_next_run(rule.id))


@router.post("", status_code=201, response_model=RuleResponse)
def create_rule(
    body: RuleRequest,
    owner_id: str = Depends(get_owner_id),
    storage: RuleStorage = Depends(get_rule_storage),
):
    rule = Rule(user_id=owner_id)
    _apply(rule, body)
    storage.create_rule(rule)
    # evaluate on the next scheduler tick
    next_run = _schedule_now(storage, rule.id)
    return _to_response(rule, next_run)


@router.put("/{rule_id}", response_model=RuleResponse)
def update_rule(
    rule_id: str,
    body: RuleRequest,
    owner_id: str = Depends(get_owner_id),
    storage: RuleStorage = Depends(get_rule_storage),
):
    rule = _owned_rule(storage, rule_id, owner_id)
    _apply(rule, body)
    storage.update_rule(rule, fields=EDITABLE_FIELDS)
    next_run = _schedule_now(storage, rule.id)
    return _to_response(rule, next_run)


@router.delete("/{rule_id}", status_code=204)
def delete_rule(
    rule_id: str,
    owner_id: str = Depends(get_owner_id),
    storage: RuleStorage = Depends(get_rule_storage),
):
    _owned_rule(storage, rule_id, owner_id)
    storage.delete_rule(rule_id)
    return Response(status_code=204)
