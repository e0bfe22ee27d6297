"""motionkit: resilient client layer for the Motion collaboration API.

Normalizes inconsistent list responses, retries transient upstream failures,
drains cursor-paginated collections within memory bounds and caches
slow-changing collections.
"""

__version__ = "0.1.0"
