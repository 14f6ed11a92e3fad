"""
Leitner box spaced-repetition scheduler.

Five boxes with fixed review intervals (1, 3, 7, 14, 30 days). A correct
answer moves an item up one box, a miss sends it back to box 1.
"""

__version__ = "0.3.0"
