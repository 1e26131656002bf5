"""sitelaunch - publish a local directory to a web host with content-addressed sync."""

__version__ = "0.1.0"
