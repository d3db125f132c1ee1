"""
Billing Services

Payment ledger, delinquency evaluation and pricing for membership dues.

- periods: Billing Period Calculator
- grace: Grace Period Gate
- ledger: Payment Ledger (payment presence lookup)
- delinquency: Delinquency Evaluator
"""

from .periods import recent_periods, period_of, next_billing_date
from .grace import in_grace_period, grace_period_ends
from .ledger import (
    PaymentLedger,
    BillingServiceError,
    PaymentLookupError,
    UserNotFoundError,
    InvalidPaymentError,
)
from .delinquency import DelinquencyEvaluator, to_money
from .pricing import PricingTierService, PricingTierNotFoundError
from .reporting import BillingStats, compute_billing_stats

__all__ = [
    'recent_periods',
    'period_of',
    'next_billing_date',
    'in_grace_period',
    'grace_period_ends',
    'PaymentLedger',
    'BillingServiceError',
    'PaymentLookupError',
    'UserNotFoundError',
    'InvalidPaymentError',
    'DelinquencyEvaluator',
    'to_money',
    'PricingTierService',
    'PricingTierNotFoundError',
    'BillingStats',
    'compute_billing_stats',
]
