"""
extctl: list, install and uninstall extensions for a host application.

/ Lista, instala y desinstala extensiones.
"""

__version__ = "0.3.0"
