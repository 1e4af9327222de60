from bikecert.inspector import inspect_certificate
from bikecert.inventory import DeviceRecord
from bikecert.report import Finding, Level, Section, ValidationReport, Verdict

__version__ = "1.0.0"

__all__ = [
    "DeviceRecord",
    "Finding",
    "Level",
    "Section",
    "ValidationReport",
    "Verdict",
    "inspect_certificate",
]
