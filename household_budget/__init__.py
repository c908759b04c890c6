"""
Household Budget - Source Package

Backend for a shared household budget: subscriptions, expenses and the
recurring-billing engine that turns subscriptions into expense postings.

DESIGN PRINCIPLES:
1. A subscription due date is posted at most once, ever
2. One failing subscription never stops a billing run
3. Tenant scope is always passed explicitly
4. Every posting is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Budget Team"
