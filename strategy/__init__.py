# PATH: strategy/__init__.py
"""
Strategy package: engine configuration, opportunity scanner, service facade.

Import submodules directly (strategy.config, strategy.scanner,
strategy.service); this package does not import them eagerly so that
discovery can depend on strategy.config without a cycle.
"""

__all__: list[str] = []
