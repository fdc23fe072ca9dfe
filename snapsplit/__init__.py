"""
SnapSplit - Source Package

Photograph a receipt, assign the items to the people who shared them,
and get each person's share with tax and tip split proportionally.

DESIGN PRINCIPLES:
1. The split itself is a pure computation over explicit inputs
2. Money is Decimal end to end
3. The AI reads the receipt; it never decides who pays what
4. Failures surface as messages the user can act on
5. Every user action is auditable
"""

__version__ = "1.0.0"
__author__ = "SnapSplit Team"
