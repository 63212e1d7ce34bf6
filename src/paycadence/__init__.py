"""
Paycadence — schedule your bills around a biweekly paycheck.

Classifies fixed expenses by the paycheck that should cover them, tracks
partial payments, generates recurring bills from templates, and tells you
when a new pay cycle should begin.
"""

__version__ = "0.1.0"
__all__ = ["Planner"]

from paycadence.planner import Planner  # noqa: E402
