"""
BMS telemetry service.

Ingests batched sensor readings from battery/solar sites and aggregates them
into KPIs and trend series for the monitoring dashboard.
"""

__version__ = "0.1.0"
