"""fleetcmd: SSH command execution and file transfer jobs for server fleets."""

__version__ = "0.1.0"
