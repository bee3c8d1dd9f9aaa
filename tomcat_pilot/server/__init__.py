"""Process lifecycle management for the local Tomcat server."""

from tomcat_pilot.server.installation import InstallationResolver
from tomcat_pilot.server.lifecycle import TomcatManager

__all__ = [
    "InstallationResolver",
    "TomcatManager",
]
