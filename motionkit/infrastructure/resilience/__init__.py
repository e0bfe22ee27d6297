"""API Resilience Implementations.

Contains services for retrying transient upstream failures with exponential
backoff and jitter, and the cancellation token threaded through every wait.
Bounded Context: API Resilience
"""
