"""
POS Shift & Ledger API
"""
