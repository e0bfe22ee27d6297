"""Cursor pagination with memory and loop bounds.
Bounded Context: Pagination
"""
