"""
Diagnostic probes.  Each one checks a single collaborator and returns
normalised summary rows, findings and recommendations.
"""

from .base import Probe
from .system_info import SystemInfoProbe
from .health import HealthProbe
from .connectivity import EndpointProbe, PeerPortProbe
from .configuration import ConfigValueProbe, cache_size_probe, group_id_probe, dns_sd_probe
from .log_analysis import LogAnalysisProbe
from .troubleshooter import TroubleshooterProbe
from .archive import ArchiveProbe, validate_archive_path

__all__ = [
    "Probe",
    "SystemInfoProbe",
    "HealthProbe",
    "EndpointProbe",
    "PeerPortProbe",
    "ConfigValueProbe",
    "cache_size_probe",
    "group_id_probe",
    "dns_sd_probe",
    "LogAnalysisProbe",
    "TroubleshooterProbe",
    "ArchiveProbe",
    "validate_archive_path",
]
