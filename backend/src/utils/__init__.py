"""
Utility modules for the scheduling engine.

This package contains shared utility functions and helpers used across
the application, including time arithmetic, datetime utilities, phone
normalization, and appointment query helpers.
"""

from utils.time_utils import intervals_overlap, time_to_minutes, minutes_to_time

__all__ = ['intervals_overlap', 'time_to_minutes', 'minutes_to_time']
