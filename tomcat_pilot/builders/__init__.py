"""Build strategies that stage a project into Tomcat's webapps directory."""

from tomcat_pilot.builders.base import BaseBuilder, ToolchainBuilder
from tomcat_pilot.builders.direct_copy import DirectCopyBuilder
from tomcat_pilot.builders.gradle import GradleBuilder
from tomcat_pilot.builders.maven import MavenBuilder
from tomcat_pilot.builders.project import is_java_ee_project
from tomcat_pilot.builders.registry import BuilderRegistry
from tomcat_pilot.builders.sync import brutal_sync
from tomcat_pilot.config import Settings
from tomcat_pilot.server.installation import InstallationResolver


def default_registry(resolver: InstallationResolver, settings: Settings) -> BuilderRegistry:
    registry = BuilderRegistry()
    for builder_class in (DirectCopyBuilder, MavenBuilder, GradleBuilder):
        registry.register(builder_class(resolver, settings))
    return registry


__all__ = [
    "BaseBuilder",
    "BuilderRegistry",
    "DirectCopyBuilder",
    "GradleBuilder",
    "MavenBuilder",
    "ToolchainBuilder",
    "brutal_sync",
    "default_registry",
    "is_java_ee_project",
]
