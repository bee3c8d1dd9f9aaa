"""Log stream processing: classification, access log tailing, fan-out."""

from tomcat_pilot.logs.access_log import AccessLogTailer, sanitize_access_line
from tomcat_pilot.logs.classifier import ClassifiedLine, Trigger, classify_process_line
from tomcat_pilot.logs.processor import LogStreamProcessor

__all__ = [
    "AccessLogTailer",
    "ClassifiedLine",
    "LogStreamProcessor",
    "Trigger",
    "classify_process_line",
    "sanitize_access_line",
]
