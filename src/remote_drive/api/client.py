"""Signed HTTP client for the drive API."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from email.utils import formatdate
from typing import TYPE_CHECKING, Protocol
from urllib import request as urllib_request
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode

from remote_drive.api.parse import check_error_envelope
from remote_drive.api.realm import DEFAULT_CLIENT_INFO
from remote_drive.config import AppConfig, session_from_config
from remote_drive.errors import DriveError, TransportFailure

if TYPE_CHECKING:
    from remote_drive.api.realm import Credentials, DriveSession, Realm

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 30.0

RequestBody = Mapping[str, str] | bytes | None


class Transport(Protocol):
    """Sends one HTTP request and returns the raw response body."""

    def send(
        self,
        method: str,
        url: str,
        body: RequestBody,
        headers: Mapping[str, str],
    ) -> bytes: ...


class RequestSigner(Protocol):
    """Produces the signature headers for one request.

    Signing is supplied by the caller; it receives the credential pair the
    realm selected and the ``Date`` header value that was sent.
    """

    def __call__(
        self,
        method: str,
        url: str,
        credentials: Credentials,
        date: str,
    ) -> dict[str, str]: ...


class HttpTransport:
    """``Transport`` backed by ``urllib.request``."""

    def __init__(self, timeout: float = DEFAULT_HTTP_TIMEOUT) -> None:
        self._timeout = timeout

    def send(
        self,
        method: str,
        url: str,
        body: RequestBody,
        headers: Mapping[str, str],
    ) -> bytes:
        """Perform the request.

        Raises:
            TransportFailure: On network failure or a non-2xx status. The
                response body of an HTTP error is kept on ``body`` so the
                caller can inspect it for an error envelope.
        """
        data: bytes | None
        if body is None:
            data = None
        elif isinstance(body, bytes):
            data = body
        else:
            data = urlencode(dict(body)).encode("utf-8")
        req = urllib_request.Request(url, data=data, headers=dict(headers), method=method)
        try:
            with urllib_request.urlopen(req, timeout=self._timeout) as resp:
                return resp.read()  # type: ignore[no-any-return]
        except HTTPError as exc:
            raise TransportFailure(
                f"HTTP {exc.code}: {exc.reason}",
                status_code=exc.code,
                body=exc.read(),
            ) from exc
        except (URLError, TimeoutError, OSError) as exc:
            raise TransportFailure(f"request failed: {exc}") from exc


def new_request_id() -> str:
    """Return a fresh X-Request-ID value."""
    return uuid.uuid4().hex.upper()


class DriveClient:
    """Authenticated client for the drive API.

    Adds the common headers, delegates signing, and translates every failure
    into a ``DriveError``.
    """

    def __init__(
        self,
        transport: Transport,
        signer: RequestSigner,
        session: DriveSession,
        client_info: str = DEFAULT_CLIENT_INFO,
    ) -> None:
        """Initialise the client.

        Args:
            transport: Sends the prepared requests.
            signer: Produces signature headers from a credential pair.
            session: Personal and family credential pairs.
            client_info: Query string appended to every request URL.
        """
        self._transport = transport
        self._signer = signer
        self._session = session
        self._client_info = client_info

    def _with_client_info(self, url: str) -> str:
        if not self._client_info:
            return url
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}{self._client_info}"

    def request(
        self,
        realm: Realm,
        method: str,
        url: str,
        body: RequestBody = None,
        headers: Mapping[str, str] | None = None,
        request_id: str | None = None,
    ) -> bytes:
        """Send a signed request and return the checked response body.

        Args:
            realm: Selects the credential pair.
            method: HTTP method.
            url: Absolute URL without the client-info suffix.
            body: Form fields, raw bytes, or None.
            headers: Extra headers, e.g. upload range headers.
            request_id: X-Request-ID to thread through a multi-step protocol;
                a fresh one is generated when omitted.

        Returns:
            Raw response body, already checked for an error envelope.

        Raises:
            DriveError: The mapped error kind for envelopes, TransportFailure otherwise.
        """
        full_url = self._with_client_info(url)
        credentials = realm.credentials(self._session)
        date = formatdate(usegmt=True)
        all_headers = {
            "Date": date,
            "SessionKey": credentials.session_key,
            "X-Request-ID": request_id or new_request_id(),
        }
        if isinstance(body, Mapping):
            all_headers["Content-Type"] = "application/x-www-form-urlencoded"
        try:
            all_headers.update(self._signer(method, full_url, credentials, date))
        except Exception as exc:
            raise TransportFailure(f"request signing failed: {exc}") from exc
        if headers:
            all_headers.update(headers)

        logger.debug("[request] sending; method:%s;url:%s;realm:%s", method, full_url, realm.name)
        try:
            response = self._transport.send(method, full_url, body, all_headers)
        except TransportFailure as exc:
            if exc.body:
                try:
                    check_error_envelope(exc.body)
                except DriveError as mapped:
                    raise mapped from exc
            logger.warning(
                "[request] transport failure; method:%s;url:%s;status:%s",
                method,
                url,
                exc.status_code,
            )
            raise
        except DriveError:
            raise
        except Exception as exc:
            raise TransportFailure(f"transport raised: {exc}") from exc

        logger.debug("[request] received; url:%s;bytes:%d", url, len(response))
        check_error_envelope(response)
        return response


def drive_client_from_config(
    config: AppConfig,
    signer: RequestSigner,
    transport: Transport | None = None,
) -> DriveClient:
    """Construct a DriveClient from application configuration.

    Args:
        config: Application configuration instance.
        signer: Caller-supplied request signer.
        transport: Transport to use; an ``HttpTransport`` honouring the
            configured timeout when omitted.

    Returns:
        Configured DriveClient instance.
    """
    return DriveClient(
        transport=transport or HttpTransport(timeout=config.http_timeout),
        signer=signer,
        session=session_from_config(config),
        client_info=config.client_info,
    )
