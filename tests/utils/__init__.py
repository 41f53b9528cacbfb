"""
Test utilities for dnsspy.

Scripted query clients, limiters and clocks for driving the tail engine
deterministically.
"""

from .fakes import CountingLimiter, FakeQueryClient, QueryCall, SteppingClock, make_page, make_record

__all__ = ['CountingLimiter', 'FakeQueryClient', 'QueryCall', 'SteppingClock', 'make_page', 'make_record']
