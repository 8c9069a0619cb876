"""Core records, statistics and configuration for the wager analytics engine.

This package contains pure building blocks shared by every service:

- ``records``   : immutable ``BetRecord`` rows, result normalization, identity keys
- ``confidence``: Wilson score intervals, normal CDF, two-tailed significance
- ``policy``    : ranking / risk / pattern / simulation knobs and env loading

Nothing in this package imports from ``wager_engine.services`` or
``wager_engine.models``.  Apart from :meth:`AnalyticsSettings.from_env`, all
modules are side-effect-free and unit-testable in isolation.
"""
