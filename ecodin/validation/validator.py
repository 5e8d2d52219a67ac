"""
Transaction Input Validation

DESIGN DECISION: Validation happens at the write boundary only.
Form input is checked here before a Transaction is built or stored; the
aggregation engine downstream never re-validates.

Issues are reported, never fatal, and never silently fixed. The UI shows
each message inline under the field it belongs to.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from ecodin.models.transaction import (
    INCOME_CATEGORY,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    Category,
    TransactionInput,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    parse_expense_category,
)

MIN_NAME_LENGTH = NAME_MIN_LENGTH
MAX_NAME_LENGTH = NAME_MAX_LENGTH


def parse_amount(value: object) -> Optional[Decimal]:
    """Parse a form amount; None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return amount if amount.is_finite() else None


class TransactionValidator:
    """Checks add/edit form input against the transaction rules."""

    def _validate_type(self, raw: TransactionInput) -> tuple[Optional[TransactionType], list[ValidationIssue]]:
        try:
            return TransactionType(raw.type), []
        except ValueError:
            return None, [ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message="Selecione o tipo: renda ou despesa.",
            )]

    def _validate_name(self, raw: TransactionInput) -> list[ValidationIssue]:
        name = raw.name.strip()
        if len(name) < MIN_NAME_LENGTH:
            return [ValidationIssue(
                field="name",
                issue_type="too_short",
                message="O nome deve ter pelo menos 2 caracteres.",
            )]
        if len(name) > MAX_NAME_LENGTH:
            return [ValidationIssue(
                field="name",
                issue_type="too_long",
                message=f"O nome deve ter no máximo {MAX_NAME_LENGTH} caracteres.",
            )]
        return []

    def _validate_amount(self, raw: TransactionInput) -> list[ValidationIssue]:
        amount = parse_amount(raw.amount)
        if amount is None:
            return [ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="O valor deve ser um número.",
            )]
        if amount <= 0:
            return [ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="O valor deve ser positivo.",
            )]
        return []

    def _validate_category(
        self,
        raw: TransactionInput,
        tx_type: Optional[TransactionType],
    ) -> list[ValidationIssue]:
        # Income ignores the category field entirely; it is forced to Renda.
        if tx_type != TransactionType.EXPENSE:
            return []

        if not raw.category or not raw.category.strip():
            return [ValidationIssue(
                field="category",
                issue_type="missing",
                message="A categoria é obrigatória.",
            )]

        if raw.category.strip() == INCOME_CATEGORY.value:
            return [ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message="A categoria Renda é exclusiva de transações de renda.",
            )]

        if parse_expense_category(raw.category) is None:
            return [ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message="Categoria inválida.",
            )]
        return []

    def validate(self, raw: TransactionInput) -> ValidationResult:
        """Run every field check and collect all issues at once."""
        issues: list[ValidationIssue] = []

        tx_type, type_issues = self._validate_type(raw)
        issues.extend(type_issues)
        issues.extend(self._validate_name(raw))
        issues.extend(self._validate_amount(raw))
        issues.extend(self._validate_category(raw, tx_type))

        return ValidationResult(issues=issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """One line per problem, for a toast or an error box."""
        if result.is_valid:
            return "Tudo certo."
        return "\n".join(f"• {issue.message}" for issue in result.issues)


def known_categories() -> list[str]:
    """Expense category labels in form order."""
    return [cat.value for cat in Category if cat != INCOME_CATEGORY]
