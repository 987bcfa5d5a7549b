"""
Seed script for default categories.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clearledger.database import SessionLocal
from clearledger.logging_config import setup_logging
from clearledger.models import Category, CategoryType

logger = logging.getLogger(__name__)

# (name, type, children). Wages, Payroll Taxes, Payroll Fees, Insurance and
# Utilities are the targets of the categorization heuristics.
DEFAULT_CATEGORIES = [
    ("Income", CategoryType.income, ["Sales", "Interest Income"]),
    ("Cost of Goods Sold", CategoryType.cost_of_goods, ["Materials", "Subcontractors"]),
    ("Payroll", CategoryType.expense, ["Wages", "Payroll Taxes", "Payroll Fees"]),
    ("Operating Expenses", CategoryType.expense, [
        "Rent", "Utilities", "Insurance", "Software", "Office Supplies", "Travel", "Meals",
    ]),
    ("Bank Fees", CategoryType.expense, []),
    ("Interest Expense", CategoryType.other_expense, []),
    ("Other Income", CategoryType.other_income, []),
    ("Uncategorized", CategoryType.expense, []),
]


def seed_categories(db: Session) -> int:
    """Insert the default chart of categories into an empty table. Returns how many were added."""
    existing_count = db.query(Category).count()
    if existing_count > 0:
        logger.info(f"Categories already seeded ({existing_count} categories exist)")
        return 0

    added = 0
    for order, (name, category_type, children) in enumerate(DEFAULT_CATEGORIES):
        parent = Category(name=name, category_type=category_type, sort_order=order)
        db.add(parent)
        db.flush()
        added += 1

        for child_order, child_name in enumerate(children):
            db.add(Category(
                name=child_name,
                category_type=category_type,
                parent_id=parent.id,
                sort_order=child_order,
            ))
            added += 1

    db.commit()
    logger.info(f"Seeded {added} categories")
    return added


def main():
    setup_logging()
    db = SessionLocal()
    try:
        seed_categories(db)
    except SQLAlchemyError:
        logger.exception("Error seeding categories")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
