"""
Core dataset logic.

Storage clients and media tools are reached through small protocols,
so the sampling and dataset code can be tested with in-memory fakes.
"""
