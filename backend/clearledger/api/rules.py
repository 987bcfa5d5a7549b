"""
Categorization rule API endpoints.
"""

import re

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from clearledger.dependencies import get_db
from clearledger.models import CategorizationRule, Category, RuleMatchType, RuleCreatedBy
from clearledger.schemas.rule import RuleCreate, RuleResponse, RuleList

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("", response_model=RuleList)
def list_rules(
    include_inactive: bool = False,
    db: Session = Depends(get_db)
):
    """List categorization rules, strongest first."""
    query = db.query(CategorizationRule)
    if not include_inactive:
        query = query.filter(CategorizationRule.is_active == True)
    rules = query.order_by(CategorizationRule.confidence.desc(), CategorizationRule.created_at).all()
    return RuleList(items=rules, total=len(rules))


@router.post("", response_model=RuleResponse, status_code=201)
def create_rule(
    rule: RuleCreate,
    db: Session = Depends(get_db)
):
    """Create an exact or pattern rule."""
    if not db.query(Category).filter(Category.id == rule.category_id).first():
        raise HTTPException(status_code=404, detail="Category not found")

    if rule.match_type == RuleMatchType.pattern:
        for pattern in (rule.payee_pattern, rule.description_pattern):
            if pattern is None:
                continue
            try:
                re.compile(pattern)
            except re.error as e:
                raise HTTPException(status_code=400, detail=f"Invalid pattern {pattern!r}: {e}")
    elif rule.description_pattern:
        raise HTTPException(status_code=400, detail="Exact rules match on payee only")

    db_rule = CategorizationRule(
        match_type=rule.match_type,
        payee_pattern=rule.payee_pattern.strip(),
        description_pattern=rule.description_pattern,
        category_id=rule.category_id,
        confidence=rule.confidence,
        created_by=RuleCreatedBy.user,
    )
    db.add(db_rule)
    db.commit()
    db.refresh(db_rule)
    return db_rule


@router.delete("/{rule_id}", status_code=204)
def deactivate_rule(
    rule_id: str,
    db: Session = Depends(get_db)
):
    """Deactivate a rule. Transactions keep the rule id that categorized them."""
    rule = db.query(CategorizationRule).filter(CategorizationRule.id == rule_id).first()
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    rule.is_active = False
    db.commit()
    return None
