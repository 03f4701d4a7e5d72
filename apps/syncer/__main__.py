"""
Syncer Module Entry Point

Allows execution via: python -m apps.syncer
"""

from apps.syncer.scheduler import cli

if __name__ == "__main__":
    cli()
