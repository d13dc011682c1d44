"""Remote API adapters: the OnePoint HCM report client and the Google group client."""

from .base import RemoteError, RemoteAuthenticationError
from .onepoint import OnePointClient
from .google_directory import GroupDirectoryClient

__all__ = [
    'RemoteError',
    'RemoteAuthenticationError',
    'OnePointClient',
    'GroupDirectoryClient',
]
