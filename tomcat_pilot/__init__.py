"""tomcat-pilot: build, deploy and observe a local Tomcat server."""

__version__ = "0.1.0"
