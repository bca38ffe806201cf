"""
One-shot delivery of a single record to the Cloudlog QSO API.

``Uploader.upload`` sends exactly one request and reports what happened.
It never retries; deciding what to do with a failure is the driver's job.
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional

import requests
from pydantic import BaseModel

from . import __version__
from .splitter import Record

logger = logging.getLogger(__name__)

USER_AGENT = f"cloudlog-tail/{__version__}"

# Statuses worth trying again later; the rest of 4xx means the request itself is wrong
TRANSIENT_STATUSES = {408, 425, 429}
AUTH_STATUSES = {401, 403}


class QsoRequest(BaseModel):
    key: str
    station_profile_id: str
    type: Literal["adif"] = "adif"
    string: str


@dataclass
class UploadResult:
    ok: bool
    reason: Optional[str] = None
    permanent: bool = False
    auth_failed: bool = False
    status_code: Optional[int] = None

    @classmethod
    def success(cls, status_code=None):
        return cls(True, status_code=status_code)

    @classmethod
    def failure(cls, reason, permanent=False, auth_failed=False, status_code=None):
        return cls(False, reason, permanent or auth_failed, auth_failed, status_code)


def _response_reason(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for field in ("reason", "message", "status"):
            if body.get(field):
                return f"HTTP {response.status_code}: {body[field]}"
    text = response.text.strip()
    if len(text) > 200:
        text = text[:200] + "..."
    return f"HTTP {response.status_code}: {text or response.reason}"


class Uploader:
    def __init__(self, api_url: str, api_key: str, station_profile_id, timeout: float = 30.0,
                 session: Optional[requests.Session] = None, encoding: str = "utf-8"):
        self.api_url = api_url
        self.api_key = api_key
        self.station_profile_id = str(station_profile_id)
        self.timeout = timeout
        self.encoding = encoding
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT

    def upload(self, record: Record) -> UploadResult:
        try:
            text = record.raw.decode(self.encoding)
        except UnicodeDecodeError as e:
            return UploadResult.failure(f"record is not valid {self.encoding}: {e}", permanent=True)

        payload = QsoRequest(
            key=self.api_key,
            station_profile_id=self.station_profile_id,
            string=text,
        )
        try:
            r = self.session.post(self.api_url, json=payload.model_dump(), timeout=self.timeout)
        except requests.RequestException as e:
            return UploadResult.failure(f"request failed: {e}")

        return self._interpret(r)

    def _interpret(self, r: requests.Response) -> UploadResult:
        code = r.status_code
        if code in AUTH_STATUSES:
            return UploadResult.failure(_response_reason(r), auth_failed=True, status_code=code)
        if code >= 500 or code in TRANSIENT_STATUSES:
            return UploadResult.failure(_response_reason(r), status_code=code)
        if 400 <= code < 500:
            return UploadResult.failure(_response_reason(r), permanent=True, status_code=code)
        if not 200 <= code < 300:
            return UploadResult.failure(f"unexpected {_response_reason(r)}", status_code=code)

        try:
            body = r.json()
        except ValueError:
            return UploadResult.failure(f"malformed response (HTTP {code}, not JSON)", status_code=code)
        if not isinstance(body, dict):
            return UploadResult.failure(f"malformed response (HTTP {code}): {body!r}", status_code=code)

        if body.get("status") != "created":
            return UploadResult.failure(_response_reason(r), permanent=True, status_code=code)
        if body.get("adif_errors"):
            logger.warning("Server reported %s ADIF errors in uploaded record", body["adif_errors"])
        return UploadResult.success(status_code=code)
