"""
FileMaker billing records → customer_sales reconciliation.

Compares billable work recorded in the FileMaker practice-management layout
against the mirrored customer_sales rows in Supabase, stages the diff and
applies it idempotently, one organization and date window at a time.
"""

__version__ = "0.1.0"
