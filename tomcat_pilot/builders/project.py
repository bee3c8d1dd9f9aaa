"""Java EE project detection."""

import re
from pathlib import Path

_POM_PACKAGING_RE = re.compile(r"<packaging>\s*war\s*</packaging>")
_GRADLE_WEB_RE = re.compile(r"tomcat|jakarta|javax\.ee")


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""


def is_java_ee_project(project_dir: Path) -> bool:
    """Whether ``project_dir`` looks like something Tomcat can deploy."""
    if (project_dir / "src" / "main" / "webapp" / "WEB-INF").is_dir():
        return True

    pom = project_dir / "pom.xml"
    if pom.exists() and _POM_PACKAGING_RE.search(_read(pom)):
        return True

    gradle = project_dir / "build.gradle"
    if gradle.exists() and _GRADLE_WEB_RE.search(_read(gradle)):
        return True

    target = project_dir / "target"
    if target.is_dir():
        return any(target.glob("*.war")) or any(target.glob("*.ear"))
    return False
