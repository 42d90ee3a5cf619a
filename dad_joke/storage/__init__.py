"""
Storage layer for the joke log and daily counters.
"""
