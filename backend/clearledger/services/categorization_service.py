"""
Categorization engine.

Resolution order, first hit wins:
    1. exact payee rules
    2. regex payee rules (optionally constrained by a description regex)
    3. domain heuristics (payroll providers, insurance, utilities)
    4. the external suggester, when one is configured

Rule matches bump the rule's usage counter. Approvals feed back into the
rule table through ``create_rule_from_approval``.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from clearledger.config import Settings, settings as default_settings
from clearledger.models.categorization_rule import CategorizationRule, RuleCreatedBy, RuleMatchType
from clearledger.models.category import Category
from clearledger.models.transaction import ReviewStatus, Transaction
from clearledger.services.suggester import CategorySuggester

logger = logging.getLogger(__name__)

LEARNED_RULE_CONFIDENCE = 0.95
PAYROLL_CONFIDENCE = 0.98
HEURISTIC_CONFIDENCE = 0.95
SUGGESTER_HISTORY_LIMIT = 20

# heuristic kind -> category name it resolves to
HEURISTIC_CATEGORY_NAMES = {
    "wages": "Wages",
    "taxes": "Payroll Taxes",
    "fees": "Payroll Fees",
    "insurance": "Insurance",
    "utilities": "Utilities",
}

INSURANCE_KEYWORDS = ("insur",)
UTILITY_KEYWORDS = ("t-mobile", "verizon", "electric", "gas", "water")

# confidence floor below which a contradicted rule is retired
RULE_ARCHIVE_CONFIDENCE = 0.5
RULE_MIN_CONFIDENCE = 0.1


def collapse_whitespace(value: str) -> str:
    return " ".join(value.split())


def payee_match_key(value: str) -> str:
    """Comparison key for exact payee rules: single spaces, case-folded."""
    return collapse_whitespace(value).casefold()


@dataclass
class CategorizationResult:
    category_id: Optional[str] = None
    confidence: float = 0.0
    rule_id: Optional[str] = None
    source: str = "none"  # exact, pattern, heuristic, suggester, none


@dataclass
class CategorizationInput:
    payee: str
    description: Optional[str] = None
    amount_cents: int = 0
    reference: Optional[str] = None


@dataclass
class TransactionTypeHints:
    is_payroll: bool = False
    payroll_type: Optional[str] = None
    is_insurance: bool = False
    is_utility: bool = False


def detect_transaction_type(
    payee: str,
    description: Optional[str] = None,
    reference: Optional[str] = None,
    payroll_providers: Sequence[str] = ("gusto",),
) -> TransactionTypeHints:
    """Keyword heuristics for payroll, insurance and utility payments."""
    lower_payee = payee.lower()
    lower_desc = (description or "").lower()
    lower_ref = (reference or "").lower()

    hints = TransactionTypeHints()
    hints.is_payroll = any(provider.lower() in lower_payee for provider in payroll_providers)
    if hints.is_payroll:
        for keyword, payroll_type in (("tax", "taxes"), ("fee", "fees"), ("net", "wages")):
            if keyword in lower_desc or keyword in lower_ref or keyword in lower_payee:
                hints.payroll_type = payroll_type
                break

    hints.is_insurance = any(k in lower_payee for k in INSURANCE_KEYWORDS)
    hints.is_utility = any(k in lower_payee for k in UTILITY_KEYWORDS)
    return hints


def _regex_search(pattern: str, value: str) -> Optional[bool]:
    """None means the pattern itself is malformed."""
    try:
        return re.search(pattern, value, re.IGNORECASE) is not None
    except re.error:
        return None


class CategorizationEngine:
    """
    Categorizes payees against a snapshot of the active rules.

    Build one engine per unit of work (an import chunk, an API request) so
    that newly learned rules are picked up on the next one.
    """

    def __init__(
        self,
        db: Session,
        suggester: Optional[CategorySuggester] = None,
        config: Optional[Settings] = None,
        record_usage: bool = True,
    ):
        self.db = db
        self.suggester = suggester
        self.settings = config or default_settings
        self.record_usage = record_usage
        self._rules: Optional[List[CategorizationRule]] = None
        self._categories: Optional[List[Category]] = None

    @property
    def rules(self) -> List[CategorizationRule]:
        if self._rules is None:
            self._rules = (
                self.db.query(CategorizationRule)
                .filter(CategorizationRule.is_active == True)
                .order_by(CategorizationRule.confidence.desc(), CategorizationRule.created_at)
                .all()
            )
        return self._rules

    @property
    def categories(self) -> List[Category]:
        if self._categories is None:
            self._categories = self.db.query(Category).order_by(Category.sort_order, Category.name).all()
        return self._categories

    def _category_by_name(self, name: str) -> Optional[Category]:
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def find_exact_rule(self, payee: str) -> Optional[CategorizationRule]:
        needle = payee_match_key(payee)
        for rule in self.rules:
            if rule.match_type == RuleMatchType.exact and payee_match_key(rule.payee_pattern) == needle:
                return rule
        return None

    def find_pattern_rule(self, payee: str, description: Optional[str]) -> Optional[CategorizationRule]:
        for rule in self.rules:
            if rule.match_type != RuleMatchType.pattern:
                continue
            payee_hit = _regex_search(rule.payee_pattern, payee)
            if payee_hit is None:
                logger.warning(f"Skipping rule {rule.id}: invalid payee pattern {rule.payee_pattern!r}")
                continue
            if not payee_hit:
                continue
            if not rule.description_pattern:
                return rule
            if not description:
                continue
            desc_hit = _regex_search(rule.description_pattern, description)
            if desc_hit is None:
                logger.warning(
                    f"Skipping rule {rule.id}: invalid description pattern {rule.description_pattern!r}"
                )
                continue
            if desc_hit:
                return rule
        return None

    def match_heuristics(
        self,
        payee: str,
        description: Optional[str],
        reference: Optional[str]
    ) -> Optional[CategorizationResult]:
        hints = detect_transaction_type(payee, description, reference, self.settings.payroll_providers)

        candidates = []
        if hints.is_payroll and hints.payroll_type:
            candidates.append((hints.payroll_type, PAYROLL_CONFIDENCE))
        if hints.is_insurance:
            candidates.append(("insurance", HEURISTIC_CONFIDENCE))
        if hints.is_utility:
            candidates.append(("utilities", HEURISTIC_CONFIDENCE))

        for kind, confidence in candidates:
            category = self._category_by_name(HEURISTIC_CATEGORY_NAMES[kind])
            if category:
                return CategorizationResult(category.id, confidence, None, "heuristic")
        return None

    def _apply_rule(self, rule: CategorizationRule, source: str) -> CategorizationResult:
        if self.record_usage:
            increment_rule_usage(self.db, rule.id)
        return CategorizationResult(rule.category_id, rule.confidence, rule.id, source)

    def categorize_with_rules(
        self,
        payee: str,
        description: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Optional[CategorizationResult]:
        """Steps 1-3. Returns None when only the suggester could help."""
        rule = self.find_exact_rule(payee)
        if rule:
            return self._apply_rule(rule, "exact")

        rule = self.find_pattern_rule(payee, description)
        if rule:
            return self._apply_rule(rule, "pattern")

        return self.match_heuristics(payee, description, reference)

    def recent_history(self, limit: int = SUGGESTER_HISTORY_LIMIT) -> List[tuple]:
        """Most recent approved payee -> category name pairs."""
        rows = (
            self.db.query(Transaction.payee, Category.name)
            .join(Category, Transaction.category_id == Category.id)
            .filter(
                Transaction.review_status == ReviewStatus.approved,
                Transaction.deleted_at.is_(None),
            )
            .order_by(Transaction.date.desc(), Transaction.created_at.desc())
            .limit(limit)
            .all()
        )
        return [(payee, name) for payee, name in rows]

    async def suggest(
        self,
        item: CategorizationInput,
        history: Optional[List[tuple]] = None
    ) -> CategorizationResult:
        if self.suggester is None:
            return CategorizationResult()

        choices = [(c.name, c.category_type.value) for c in self.categories]
        if history is None:
            history = self.recent_history()
        try:
            suggestion = await self.suggester.suggest(
                item.payee, item.description, item.amount_cents, choices, history
            )
        except Exception as e:
            logger.warning(f"Suggester failed for payee {item.payee!r}: {e}")
            return CategorizationResult()

        if suggestion is None:
            return CategorizationResult()
        category = self._category_by_name(suggestion.category_name)
        if category is None:
            return CategorizationResult()
        return CategorizationResult(category.id, suggestion.confidence, None, "suggester")

    async def categorize(
        self,
        payee: str,
        description: Optional[str] = None,
        amount_cents: int = 0,
        reference: Optional[str] = None,
    ) -> CategorizationResult:
        result = self.categorize_with_rules(payee, description, reference)
        if result:
            return result
        return await self.suggest(CategorizationInput(payee, description, amount_cents, reference))

    async def categorize_many(
        self,
        items: Sequence[CategorizationInput],
        concurrency: Optional[int] = None,
    ) -> List[CategorizationResult]:
        """
        Categorize a batch. Rule lookups and database work run sequentially;
        only suggester calls are issued concurrently.
        """
        results: List[Optional[CategorizationResult]] = [
            self.categorize_with_rules(item.payee, item.description, item.reference) for item in items
        ]
        pending = [i for i, result in enumerate(results) if result is None]

        if pending and self.suggester is not None:
            history = self.recent_history()
            # categories are loaded here so the concurrent calls never touch the session
            _ = self.categories
            semaphore = asyncio.Semaphore(concurrency or self.settings.suggester_concurrency)

            async def run(index: int) -> CategorizationResult:
                async with semaphore:
                    return await self.suggest(items[index], history)

            suggested = await asyncio.gather(*(run(i) for i in pending))
            for index, result in zip(pending, suggested):
                results[index] = result

        return [result or CategorizationResult() for result in results]


def increment_rule_usage(db: Session, rule_id: str) -> None:
    db.query(CategorizationRule).filter(CategorizationRule.id == rule_id).update(
        {
            CategorizationRule.times_applied: CategorizationRule.times_applied + 1,
            CategorizationRule.last_used: datetime.utcnow(),
        },
        synchronize_session=False,
    )


def create_rule_from_approval(
    db: Session,
    payee: str,
    description: Optional[str],
    category_id: str,
) -> CategorizationRule:
    """
    Learn from a confirmed category.

    An existing exact rule for the same payee and category is credited with
    a correct answer. Exact rules for the same payee that point at another
    category are debited, so the confirmed category outranks them from now
    on. The description is accepted for parity with the categorize call but
    never narrows an exact rule.
    """
    pattern = collapse_whitespace(payee)
    key = payee_match_key(pattern)
    same_payee = [
        rule for rule in (
            db.query(CategorizationRule)
            .filter(
                CategorizationRule.is_active == True,
                CategorizationRule.match_type == RuleMatchType.exact,
            )
            .order_by(CategorizationRule.created_at)
            .all()
        )
        if payee_match_key(rule.payee_pattern) == key
    ]

    for rule in same_payee:
        if rule.category_id != category_id:
            record_rule_wrong(rule)

    confirmed = next((rule for rule in same_payee if rule.category_id == category_id), None)
    if confirmed is not None:
        increment_rule_usage(db, confirmed.id)
        record_rule_correct(confirmed)
        db.flush()
        return confirmed

    rule = CategorizationRule(
        match_type=RuleMatchType.exact,
        payee_pattern=pattern,
        description_pattern=None,
        category_id=category_id,
        confidence=LEARNED_RULE_CONFIDENCE,
        times_applied=1,
        times_correct=1,
        times_wrong=0,
        last_used=datetime.utcnow(),
        created_by=RuleCreatedBy.user,
    )
    db.add(rule)
    db.flush()
    logger.info(f"Learned rule {pattern!r} -> {category_id}")
    return rule


def record_rule_correct(rule: CategorizationRule) -> None:
    """A confirmed rule is restored to at least the learned-rule confidence."""
    rule.times_correct = (rule.times_correct or 0) + 1
    rule.confidence = max(rule.confidence, LEARNED_RULE_CONFIDENCE)


def record_rule_wrong(rule: CategorizationRule) -> None:
    """
    Lower a contradicted rule's confidence by blending in its accuracy, and
    always by at least 10%. Rules that fall under the archive floor are
    deactivated.
    """
    rule.times_wrong = (rule.times_wrong or 0) + 1
    correct = rule.times_correct or 0
    accuracy = correct / (correct + rule.times_wrong)
    blended = rule.confidence * 0.7 + accuracy * 0.3
    rule.confidence = max(RULE_MIN_CONFIDENCE, min(blended, rule.confidence * 0.9))
    if rule.confidence < RULE_ARCHIVE_CONFIDENCE:
        rule.is_active = False
        logger.info(f"Retired rule {rule.id} ({rule.payee_pattern!r}) after {rule.times_wrong} corrections")


def summarize_sources(results: Sequence[CategorizationResult]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for result in results:
        counts[result.source] = counts.get(result.source, 0) + 1
    return counts
