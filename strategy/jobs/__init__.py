# PATH: strategy/jobs/__init__.py
"""
Strategy jobs package.

Available entry points:
    python -m strategy.jobs.run_arb   # Periodic refresh / scan / execute loop

NOTE: This __init__.py intentionally does NOT import run_arb to avoid side
effects (dotenv loading, signal handlers) when importing the package.
"""

__all__: list[str] = []
