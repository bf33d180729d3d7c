"""AWS session manager"""

import boto3
from typing import Optional, Dict
from core.utils.logger import get_infrastructure_logger


class AWSSessionManager:
    """Creates and caches the boto3 session and service clients.

    Credentials come from the default boto3 chain, optionally narrowed to a
    named profile.
    """

    def __init__(self, region: Optional[str] = None, profile: Optional[str] = None):
        self.region = region
        self.profile = profile
        self.logger = get_infrastructure_logger(__name__)
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, object] = {}

    def get_session(self) -> boto3.Session:
        """Get the boto3 session, creating it on first use."""
        if self._session is None:
            self._session = boto3.Session(
                profile_name=self.profile, region_name=self.region
            )
            self.logger.debug(
                f"Created AWS session (profile={self.profile or 'default'}, "
                f"region={self._session.region_name})"
            )
        return self._session

    def client(self, service_name: str):
        """Get a cached client for a service."""
        if service_name not in self._clients:
            self._clients[service_name] = self.get_session().client(service_name)
        return self._clients[service_name]

    @property
    def region_name(self) -> Optional[str]:
        """Region the session resolved to."""
        return self.get_session().region_name
