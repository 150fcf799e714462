"""
Posting Rules.

Fixed account mapping for each event kind. Roles are resolved to account
codes through settings so the chart of accounts can be changed without code.

    invoice-issued:   DEBIT receivable (total), CREDIT revenue (subtotal),
                      CREDIT tax_payable (tax_total)
    payment-received: DEBIT cash (amount), CREDIT receivable (amount)
"""

from typing import Dict, List, NamedTuple

from backend.app.core.config import settings
from backend.app.domain.ledger.events import EventKind, InvoiceIssued, PaymentReceived
from backend.app.models.ledger_enums import EntrySide, TransactionKind


class AccountRole:
    CASH = "cash"
    RECEIVABLE = "receivable"
    REVENUE = "revenue"
    TAX_PAYABLE = "tax_payable"


ACCOUNT_ROLES = (AccountRole.CASH, AccountRole.RECEIVABLE, AccountRole.REVENUE, AccountRole.TAX_PAYABLE)


class PostingLeg(NamedTuple):
    side: EntrySide
    role: str
    amount_field: str


class PostingRule(NamedTuple):
    event_type: type
    transaction_kind: TransactionKind
    legs: List[PostingLeg]


POSTING_RULES: Dict[str, PostingRule] = {
    EventKind.INVOICE_ISSUED: PostingRule(
        event_type=InvoiceIssued,
        transaction_kind=TransactionKind.INVOICE,
        legs=[
            PostingLeg(EntrySide.DEBIT, AccountRole.RECEIVABLE, "total"),
            PostingLeg(EntrySide.CREDIT, AccountRole.REVENUE, "subtotal"),
            PostingLeg(EntrySide.CREDIT, AccountRole.TAX_PAYABLE, "tax_total"),
        ],
    ),
    EventKind.PAYMENT_RECEIVED: PostingRule(
        event_type=PaymentReceived,
        transaction_kind=TransactionKind.PAYMENT,
        legs=[
            PostingLeg(EntrySide.DEBIT, AccountRole.CASH, "amount"),
            PostingLeg(EntrySide.CREDIT, AccountRole.RECEIVABLE, "amount"),
        ],
    ),
}


def role_account_code(role: str) -> str:
    """Account code currently configured for a posting role."""
    return getattr(settings, f"{role}_account_code")


def validate_posting_rules(rules: Dict[str, PostingRule]) -> None:
    """
    Check each rule has a debit and a credit leg and that every role and
    amount field exists.

    Raises:
        ValueError: on the first misconfigured rule
    """
    for kind, rule in rules.items():
        sides = {leg.side for leg in rule.legs}
        if sides != {EntrySide.DEBIT, EntrySide.CREDIT}:
            raise ValueError(f"Posting rule '{kind}' needs both a debit and a credit leg")
        for leg in rule.legs:
            if leg.role not in ACCOUNT_ROLES:
                raise ValueError(f"Posting rule '{kind}' uses unknown role '{leg.role}'")
            if leg.amount_field not in rule.event_type.model_fields:
                raise ValueError(
                    f"Posting rule '{kind}' reads missing field '{leg.amount_field}' "
                    f"of {rule.event_type.__name__}"
                )


validate_posting_rules(POSTING_RULES)
