"""
WeatherInsight MetObs Service

Aggregates current and historical observations from the SMHI MetObs
open data API: network-wide average temperature, monthly rainfall
totals and a bounded per-station temperature stream.
"""

__version__ = "0.1.0"
