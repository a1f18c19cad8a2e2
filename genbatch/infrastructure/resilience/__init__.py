"""API Resilience Implementations.

Contains the admission-control primitives: token-bucket rate limiting,
FIFO concurrency gates, the adaptive upload limiter, the circuit breaker and
retry policies with fixed backoff.
Bounded Context: API Resilience
"""
