"""Number Analyzer - concurrent property checks for a single integer.

The analysis core (src.analysis) validates input, runs the even, prime,
perfect-square and parity checks concurrently, and joins their outcomes.
The HTTP layer (src.api) exposes it as one endpoint.
"""

__version__ = "0.1.0"
