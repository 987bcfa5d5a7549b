"""
Category API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List

from clearledger.dependencies import get_db
from clearledger.models import Category, CategorizationRule, Transaction, TransactionSplit
from clearledger.schemas.category import (
    CategoryCreate,
    CategoryUpdate,
    CategoryResponse,
    CategoryList,
)

router = APIRouter(prefix="/categories", tags=["categories"])


def build_category_tree(categories: List[Category]) -> List[CategoryResponse]:
    """Build a hierarchical tree structure from flat category list."""
    category_map = {
        cat.id: CategoryResponse.model_validate(cat).model_copy(update={"children": []})
        for cat in categories
    }

    root_categories = []
    for cat in category_map.values():
        if cat.parent_id is None:
            root_categories.append(cat)
        else:
            parent = category_map.get(cat.parent_id)
            if parent:
                parent.children.append(cat)

    return root_categories


def _validate_parent(db: Session, parent_id: str, category_id: str = None) -> None:
    parent = db.query(Category).filter(Category.id == parent_id).first()
    if not parent:
        raise HTTPException(status_code=404, detail="Parent category not found")
    if parent.parent_id is not None:
        raise HTTPException(status_code=400, detail="Categories are at most two levels deep")
    if category_id and parent.id == category_id:
        raise HTTPException(status_code=400, detail="A category cannot be its own parent")


@router.get("", response_model=CategoryList)
def list_categories(
    db: Session = Depends(get_db)
):
    """List all categories with tree structure."""
    categories = db.query(Category).order_by(Category.sort_order, Category.name).all()
    tree = build_category_tree(categories)

    return CategoryList(
        items=tree,
        total=len(categories)
    )


@router.post("", response_model=CategoryResponse, status_code=201)
def create_category(
    category: CategoryCreate,
    db: Session = Depends(get_db)
):
    """Create a new category."""
    if category.parent_id:
        _validate_parent(db, category.parent_id)
    if db.query(Category).filter(Category.name == category.name).first():
        raise HTTPException(status_code=409, detail="Category name already exists")

    db_category = Category(
        name=category.name,
        category_type=category.category_type,
        parent_id=category.parent_id,
        sort_order=category.sort_order,
    )
    db.add(db_category)
    db.commit()
    db.refresh(db_category)
    return db_category


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(
    category_id: str,
    db: Session = Depends(get_db)
):
    """Get a specific category."""
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.patch("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: str,
    category_update: CategoryUpdate,
    db: Session = Depends(get_db)
):
    """Update a category."""
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    if category_update.parent_id is not None:
        _validate_parent(db, category_update.parent_id, category_id)

    if category_update.name is not None:
        category.name = category_update.name
    if category_update.category_type is not None:
        category.category_type = category_update.category_type
    if category_update.parent_id is not None:
        category.parent_id = category_update.parent_id
    if category_update.sort_order is not None:
        category.sort_order = category_update.sort_order

    db.commit()
    db.refresh(category)
    return category


@router.delete("/{category_id}", status_code=204)
def delete_category(
    category_id: str,
    db: Session = Depends(get_db)
):
    """Delete an unused category. Categories referenced anywhere are refused with 409."""
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    in_use = (
        db.query(Transaction.id)
        .filter(or_(Transaction.category_id == category_id, Transaction.ai_suggested_category_id == category_id))
        .first()
        or db.query(TransactionSplit.id).filter(TransactionSplit.category_id == category_id).first()
        or db.query(CategorizationRule.id).filter(CategorizationRule.category_id == category_id).first()
        or db.query(Category.id).filter(Category.parent_id == category_id).first()
    )
    if in_use:
        raise HTTPException(status_code=409, detail="Category is in use and cannot be deleted")

    db.delete(category)
    db.commit()
    return None
