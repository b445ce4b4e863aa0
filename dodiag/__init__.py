"""
dodiag - Delivery Optimization diagnostics collector

Collects the local Windows host state that matters for Delivery
Optimization peer caching and writes a structured report:

- Service health (download mode, peers, cache use)
- Cloud endpoint and peer port reachability
- Cache, Group ID and DNS-SD policy values
- Historical transfer success and the external troubleshooter
- Optional diagnostics archive inspection with error-code lookup
"""

__author__ = "dodiag contributors"
__license__ = "GPL-3.0"
