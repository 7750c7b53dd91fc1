"""
Business services: pure pricing rules, no I/O.
"""
