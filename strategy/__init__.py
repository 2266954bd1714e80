# PATH: strategy/__init__.py
"""
Strategy package.

Modules:
- config: Bot configuration (YAML + environment)
- detector: Cross-venue opportunity detection
- store: Filtered, ranked opportunity store
- engine: Composition root and periodic loops

Nothing is imported here; the execution layer imports strategy.config and
strategy.store directly and strategy.engine imports the execution layer.
"""
