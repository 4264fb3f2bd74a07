"""
Main entry point for the cloud resource monitor package.
This allows running the package with: python -m cloud_resource_monitor
"""

from .console import main_sync

if __name__ == "__main__":
    main_sync()
