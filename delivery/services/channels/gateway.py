"""HTTP gateway adapter for the SMS and PUSH channels."""

from collections.abc import Mapping
from typing import Any

import requests
import structlog

from delivery.enums import Channel
from delivery.services.channel_sender import SendResult

logger = structlog.get_logger(__name__)


class GatewayChannelSender:
    """Posts notifications to an HTTP delivery gateway.

    The gateway accepts a JSON body and answers 2xx when it has taken the
    message. Any other status, a timeout or a connection error is reported
    as a failed send.
    """

    def __init__(
        self,
        gateway_name: str,
        url: str,
        api_key: str = "",
        timeout: float = 10,
    ):
        """Initialize gateway sender.

        Args:
            gateway_name: Name of the gateway (for logging/errors)
            url: Endpoint receiving the POST
            api_key: Optional bearer token
            timeout: Request timeout in seconds
        """
        self.gateway_name = gateway_name
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def send(
        self,
        channel: Channel,
        recipient_id: str,
        subject: str,
        content: str,
        metadata: Mapping[str, Any],
    ) -> SendResult:
        payload = {
            "channel": channel.value,
            "recipientId": recipient_id,
            "subject": subject,
            "content": content,
            "metadata": dict(metadata),
        }

        try:
            response = requests.post(
                self.url,
                json=payload,
                headers=self._get_headers(),
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.error(
                "gateway_request_timed_out",
                gateway=self.gateway_name,
                url=self.url,
                timeout=self.timeout,
            )
            return SendResult.failed(
                f"{self.gateway_name} timed out after {self.timeout}s", timed_out=True
            )
        except requests.ConnectionError as e:
            logger.error(
                "gateway_connection_failed",
                gateway=self.gateway_name,
                url=self.url,
                error=str(e),
            )
            return SendResult.failed(f"Failed to connect to {self.gateway_name}")

        if response.status_code >= 400:
            logger.error(
                "gateway_returned_error",
                gateway=self.gateway_name,
                status_code=response.status_code,
                response_text=response.text,
            )
            return SendResult.failed(
                f"{self.gateway_name} returned {response.status_code}"
            )

        logger.info(
            "gateway_message_accepted",
            gateway=self.gateway_name,
            channel=channel.value,
            status_code=response.status_code,
        )
        return SendResult.ok()
