"""
Module Upgrader — fetch, build, back up and deploy a fleet of modules.
"""

__version__ = "0.1.0"
