"""
Nomadays tarification: pricing rules, payment schedules and room demand.
"""

__version__ = "1.0.0"
