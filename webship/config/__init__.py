"""Servers configuration loading."""
from webship.config.loader import ServersConfigLoader, find_servers_config

__all__ = ['ServersConfigLoader', 'find_servers_config']
