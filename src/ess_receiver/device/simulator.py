"""HTTP client that behaves like an ESS K90 Pro terminal.

Used by ``ess-receiver simulate`` to exercise a running receiver with the
same requests a real device makes.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
USER_AGENT = "ESS-Device/1.0"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
TEXT_CONTENT_TYPE = "text/plain"

ACK_PATTERN = re.compile(r"\AOK\nSTAMP=(\d+)\Z")

# Legacy upload: form fields with a DATA field of RECORD= lines
SAMPLE_LEGACY_PAYLOAD = (
    "SN=K90PRO001&STAMP=1234567890&OPLOG=1&DATA="
    "RECORD=1\t123456\t2024-01-15 09:00:00\t0\t15\n"
    "RECORD=2\t789012\t2024-01-15 09:01:00\t1\t25"
)

# Current upload: USER / FP / attendance lines in the body
SAMPLE_CURRENT_PAYLOAD = (
    "USER PIN=123456\tName=Alice\tPri=0\tPasswd=\tCard=\tGrp=1\tTZ=0000000100000000\n"
    "FP PIN=123456\tFID=6\tSize=8\tValid=1\tTMP=TVNTUzIx\n"
    "123456\t2024-01-15 09:00:00\t0\t15\t0\n"
    "789012\t2024-01-15 17:30:00\t1\t1\t0\t\t\t0\t0\n"
)


def parse_ack(text: str) -> Optional[int]:
    """Return the STAMP value of a well-formed acknowledgment, else None."""
    match = ACK_PATTERN.match(text)
    return int(match.group(1)) if match else None


class DeviceSimulator:
    """Sends push-protocol requests to a receiver."""

    def __init__(self, base_url: str, serial: str = "K90PRO001", timeout: int = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.serial = serial
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers["User-Agent"] = USER_AGENT

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, max=10),
        retry=retry_if_exception_type(requests.ConnectionError),
        reraise=True,
    )
    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        resp = self._session.request(
            method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs
        )
        resp.raise_for_status()
        return resp

    def push(
        self,
        body: str,
        path: str = "/cdata",
        content_type: str = FORM_CONTENT_TYPE,
    ) -> str:
        """POST a payload and return the receiver's reply text."""
        logger.info("Pushing %d bytes to %s%s", len(body), self.base_url, path)
        resp = self._request(
            "POST",
            path,
            data=body.encode("utf-8"),
            headers={"Content-Type": content_type},
            params={"SN": self.serial},
        )
        return resp.text

    def poll_commands(self, stamp: str = "1234567890") -> str:
        """GET /devicecmd as the device does between uploads."""
        resp = self._request("GET", "/devicecmd", params={"SN": self.serial, "STAMP": stamp})
        return resp.text

    def health(self) -> Dict[str, Any]:
        """Fetch the receiver's health document."""
        return self._request("GET", "/").json()

    def close(self) -> None:
        self._session.close()
