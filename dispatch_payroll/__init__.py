"""
Dispatcher payroll engine.

Computes gross, commission and weekly bonus eligibility for a small trucking
fleet, and keeps automatic bonus records in sync with the loads.
"""

__version__ = "0.1.0"
