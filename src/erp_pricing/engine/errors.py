"""
Pricing errors.

Terminal errors abort a single calculation and are reported to the caller
by their `code`. RuleEvaluationSkipped only removes one rule from a run.
"""


class PricingError(Exception):
    """Base class for pricing failures."""
    code = "PricingError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)


class ItemNotFound(PricingError):
    code = "ItemNotFound"


class CustomerNotFound(PricingError):
    code = "CustomerNotFound"


class InvalidQuantity(PricingError):
    code = "InvalidQuantity"


class RuleEvaluationSkipped(PricingError):
    """A discount rule is malformed and was left out of the calculation."""
    code = "RuleEvaluationSkipped"

    def __init__(self, rule_id: str, reason: str):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(f"Rule {rule_id} skipped: {reason}")
