"""
Paycheck Planner - Source Package

The paycheck planning and debt-allocation engine of a household
budgeting application.

DESIGN PRINCIPLES:
1. Paychecks are projected, never stored
2. Monthly debt instances are created exactly once per debt and month
3. The storage unique key is the only serialization point
4. Warnings are derived on every request; only dismissals are stored
5. Storage and authorization are swappable collaborators
"""

__version__ = "1.0.0"
__author__ = "Paycheck Planner Team"
