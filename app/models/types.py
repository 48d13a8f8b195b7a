"""
Standard type definitions for database models.

Provides consistent types for monetary and rate fields across all models.
"""

from sqlalchemy import DECIMAL

# Standard money type for order totals, commissions, balances, payouts
# Precision: 12 digits total, 2 after decimal point (currency cents)
# Range: up to 9,999,999,999.99
MoneyType = DECIMAL(12, 2)

# Commission rate as a decimal fraction
# Precision: 5 digits total, 4 after decimal point
# Suitable for: 0.1000, 0.1500, 0.0825
RateType = DECIMAL(5, 4)
