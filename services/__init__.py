"""
Services package for TickerWatch.
Quote synchronization, enrichment, currency conversion, alerting, display
rotation and portfolio valuation.

Import from the submodules directly (services.coordinator, services.quotes,
...); models.quote depends on services.currency, so this package does not
eagerly import its submodules.
"""
