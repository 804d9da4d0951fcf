from __future__ import annotations

import logging
from typing import Any

import requests
import urllib3

from redfish_tap.config import RedfishConfig
from redfish_tap.logging_utils import TRACE_LEVEL


class RedfishError(Exception):
    """Base class for failures talking to the management controller."""


class RedfishTransportError(RedfishError):
    """Connection, DNS or timeout failure."""


class RedfishHTTPError(RedfishError):
    def __init__(self, status: int, url: str, reason: str | None = None) -> None:
        self.status = status
        self.url = url
        self.reason = reason
        message = f"HTTP {status} for {url}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class RedfishNotSupportedError(RedfishHTTPError):
    """HTTP 404: the resource does not exist on this firmware version."""


class RedfishPayloadError(RedfishError):
    """The controller answered 2xx but the body is not JSON."""


class RedfishClient:
    """Authenticated GET access to one management controller.

    Paths are absolute controller paths (``/rest/v1/Systems/1``) or full
    URLs, which lets callers follow ``href``/``@odata.id`` links verbatim.
    """

    def __init__(
        self, config: RedfishConfig, session: requests.Session | None = None
    ) -> None:
        self.config = config
        self.base_url = f"https://{config.host}"
        self.logger = logging.getLogger(self.__class__.__name__)
        self.session = session if session is not None else requests.Session()
        self.session.auth = (config.username, config.password)
        self.session.headers.update({"Accept": "application/json"})

        if config.ca_cert:
            self.session.verify = config.ca_cert
        elif config.verify_tls:
            self.session.verify = True
        else:
            self.session.verify = False
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            self.logger.warning(
                "TLS certificate verification disabled for %s (verify_tls = false).",
                config.host,
            )

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    def get(self, path: str) -> Any:
        url = self.url_for(path)
        self.logger.debug("GET %s", url)
        try:
            response = self.session.get(url, timeout=self.config.timeout_s)
        except requests.Timeout as exc:
            raise RedfishTransportError(
                f"Timed out after {self.config.timeout_s}s fetching {url}"
            ) from exc
        except requests.RequestException as exc:
            raise RedfishTransportError(f"Request to {url} failed: {exc}") from exc

        status = response.status_code
        if status == 404:
            raise RedfishNotSupportedError(status, url, response.reason)
        if not 200 <= status < 300:
            raise RedfishHTTPError(status, url, response.reason)

        try:
            data = response.json()
        except ValueError as exc:
            raise RedfishPayloadError(f"Invalid JSON from {url}: {exc}") from exc
        if self.logger.isEnabledFor(TRACE_LEVEL):
            self.logger.log(TRACE_LEVEL, "Response from %s: %s", url, data)
        return data

    @staticmethod
    def get_link(resource: Any, relation: str) -> str | None:
        """Find a related collection link, tolerating firmware casing drift.

        iLO 4 firmware uses ``links.<rel>.href``; later revisions use
        ``Links.<rel>.href``; standard Redfish uses ``@odata.id``.
        """
        if not isinstance(resource, dict):
            return None
        for container_key in ("links", "Links"):
            container = resource.get(container_key)
            if not isinstance(container, dict):
                continue
            target = container.get(relation)
            if not isinstance(target, dict):
                continue
            for link_key in ("href", "@odata.id"):
                link = target.get(link_key)
                if isinstance(link, str) and link:
                    return link
        return None

    def close(self) -> None:
        self.session.close()
