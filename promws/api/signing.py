"""AWS SigV4 request signing for the metrics backend (Amazon Managed Prometheus)."""

import logging
from typing import Dict, Optional

from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials

from ..core.config import BridgeConfig

logger = logging.getLogger("promws.server")


class RequestSigner:
    """Signs outbound backend requests when credentials are configured."""

    def __init__(self, config: BridgeConfig):
        """
        Initialize signer from the bridge configuration.

        Args:
            config: Bridge configuration holding the AWS credentials, region and service
        """
        self.region = config.aws_region
        self.service = config.aws_service
        self._credentials: Optional[Credentials] = None

        if config.aws_access_key_id:
            self._credentials = Credentials(
                access_key=config.aws_access_key_id,
                secret_key=config.aws_secret_access_key,
                token=config.aws_session_token or None,
            )

    @property
    def enabled(self) -> bool:
        return self._credentials is not None

    def sign(self, method: str, url: str, headers: Dict[str, str]) -> Dict[str, str]:
        """
        Return headers for the request, with SigV4 headers added when enabled.

        Args:
            method: HTTP method
            url: Full request URL including the query string
            headers: Headers that will be sent (signed as-is)

        Returns:
            New header dictionary; the input is left untouched
        """
        if not self.enabled:
            return dict(headers)

        request = AWSRequest(method=method, url=url, headers=dict(headers))
        SigV4Auth(self._credentials, self.service, self.region).add_auth(request)
        return dict(request.headers.items())
