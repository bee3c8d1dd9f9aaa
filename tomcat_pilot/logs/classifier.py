"""Classification of raw Tomcat process output into LogEvent levels."""

import re
from dataclasses import dataclass
from enum import Enum

from tomcat_pilot.models.log import LogLevel


class Trigger(str, Enum):
    """Log patterns that drive a browser refresh."""

    STARTUP = "startup"
    CONTEXT_RELOAD = "context_reload"


@dataclass(frozen=True)
class ClassifiedLine:
    level: LogLevel
    message: str
    trigger: Trigger | None = None


ANSI_RE = re.compile(r"\x1B\[[0-9;]*[A-Za-z]")

TIMESTAMP_PREFIXES = [
    # Oct 19, 2026 10:00:00 AM
    re.compile(r"^\w+ \d+, \d+ \d+:\d+:\d+ [AP]M "),
    # 19-Oct-2026 10:00:00.123
    re.compile(r"^\d{1,2}-\w{3}-\d{4} \d{2}:\d{2}:\d{2}(?:\.\d+)? "),
    # 2026-10-19 10:00:00,123
    re.compile(r"^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(?:[.,]\d+)? "),
]

STARTUP_PATTERNS = [
    re.compile(r"Server startup in \[?(\d[\d,.]*)\]?\s*(?:milliseconds|ms)"),
    re.compile(r"(\d+)\s*毫秒后服务器启动"),
]
NON_DIGIT_RE = re.compile(r"\D")
CONTEXT_RELOAD_RE = re.compile(r"Reloading Context with name \[([^\]]+)\] is completed")

SEVERITY_RE = re.compile(
    r"^.*?\b(SEVERE|WARNING|INFO|CONFIG|FINEST|FINER|FINE)\b:?\s+(.*)$"
)
SEVERITY_LEVELS = {
    "SEVERE": LogLevel.ERROR,
    "WARNING": LogLevel.WARN,
    "INFO": LogLevel.INFO,
    "CONFIG": LogLevel.INFO,
    "FINE": LogLevel.DEBUG,
    "FINER": LogLevel.DEBUG,
    "FINEST": LogLevel.DEBUG,
}
# [main] / [http-nio-8080-exec-1]
THREAD_PREFIX_RE = re.compile(r"^\s*\[[^\]]+\]\s*")
# org.apache.catalina.startup.Catalina.start
SOURCE_PREFIX_RE = re.compile(r"^(?:[A-Za-z_$][\w$]*\.){2,}[\w$<>]+\s+")

HTTP_RE = re.compile(r"\b(?:GET|POST|PUT|DELETE|PATCH|HEAD|OPTIONS)\s+/")
MANAGER_PATH = "/manager/text/"

DROPPED_MESSAGES = (
    "Deploying web application",
    "At least one JAR was scanned for TLDs yet",
    'You need to add "',
    "Match [Context] failed to set property",
)

BANNER_DENYLIST = [
    re.compile(p)
    for p in (
        r"^Loaded Apache Tomcat Native library",
        r"^org.apache.catalina.startup.VersionLoggerListener log",
        r"^OpenSSL successfully initialized",
        r"^At least one JAR was scanned for TLDs",
        r"^Log4j API could not find a logging provider",
        r'^You need to add "--add-opens"',
        r"^Match \[Context\] failed to set property",
        r"^org.apache.catalina.core.ApplicationContext log",
        r"^Manager: init:",
        r"^Reloading Context with name",
        r"^SessionListener: contextInitialized",
        r"^ContextListener: ",
        r"^Starting ProtocolHandler",
        r"^Server version name",
        r"^Server built:",
        r"^Server version number",
        r"^OS Name:",
        r"^OS Version:",
        r"^Architecture:",
        r"^Java Home:",
        r"^JVM Version:",
        r"^JVM Vendor:",
        r"^CATALINA_",
        r"^Command line argument:",
    )
]

JSP_ERROR_MARKERS = ('Syntax error on token "finally"', "] in the jsp file")

STACK_TRACE_MARKERS = (
    "java.",
    "javax.",
    "jakarta.",
    "org.",
    "com.",
    "in the generated",
    "cannot be resolved",
    "Stacktrace:",
    "Syntax error",
    "An error occurred",
)
STACK_TRACE_RES = [
    re.compile(r"^\s+at\s"),
    re.compile(r"^\s*\.\.\. \d+ more"),
    re.compile(r"^Caused by:"),
    re.compile(r"^\d+:"),
    re.compile(r"\.java:\d+\)"),
]


def strip_decorations(raw: str) -> str:
    """Remove terminal color codes and a leading timestamp."""
    line = ANSI_RE.sub("", raw).rstrip("\r\n")
    for pattern in TIMESTAMP_PREFIXES:
        stripped = pattern.sub("", line, count=1)
        if stripped != line:
            return stripped
    return line


def detect_trigger(line: str) -> ClassifiedLine | None:
    """Match the startup-complete and context-reload patterns."""
    for pattern in STARTUP_PATTERNS:
        match = pattern.search(line)
        if match:
            # 1,204 / 1.204 depending on the JVM locale
            millis = NON_DIGIT_RE.sub("", match.group(1))
            return ClassifiedLine(LogLevel.SUCCESS, f"Tomcat started in {millis}ms", Trigger.STARTUP)
    match = CONTEXT_RELOAD_RE.search(line)
    if match:
        return ClassifiedLine(
            LogLevel.INFO, f"Context [{match.group(1)}] reloaded", Trigger.CONTEXT_RELOAD
        )
    return None


def _is_banner(text: str) -> bool:
    return any(pattern.search(text) for pattern in BANNER_DENYLIST)


def _clean_message(text: str) -> str:
    text = THREAD_PREFIX_RE.sub("", text, count=1)
    text = SOURCE_PREFIX_RE.sub("", text, count=1)
    return re.sub(r"\s{2,}", " ", text).strip()


def classify_process_line(raw: str) -> ClassifiedLine | None:
    """Classify one line of Tomcat stdout/stderr.

    Returns None for lines that should not be shown at all (blank lines and
    the noisy startup banner).
    """
    line = strip_decorations(raw)
    if not line.strip():
        return None

    triggered = detect_trigger(line)
    if triggered:
        return triggered

    severity = SEVERITY_RE.match(line)
    if severity:
        message = _clean_message(severity.group(2))
        if not message or message.startswith(DROPPED_MESSAGES) or _is_banner(message):
            return None
        return ClassifiedLine(SEVERITY_LEVELS[severity.group(1)], message)

    if HTTP_RE.search(line):
        message = re.sub(r"(\d+)\s*ms$", "", line)
        message = re.sub(r"\s{2,}", " ", message).strip()
        level = LogLevel.DEBUG if MANAGER_PATH in message else LogLevel.HTTP
        return ClassifiedLine(level, message)

    if any(marker in line for marker in JSP_ERROR_MARKERS):
        return ClassifiedLine(LogLevel.ERROR, line)

    if _is_banner(line) or "API could not find a logging provider." in line:
        return None

    if any(marker in line for marker in STACK_TRACE_MARKERS) or any(
        pattern.search(line) for pattern in STACK_TRACE_RES
    ):
        return ClassifiedLine(LogLevel.DEBUG, line)

    return ClassifiedLine(LogLevel.APP, line)
