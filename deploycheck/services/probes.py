"""
Network probe primitives.

Each probe wraps one external call with an explicit timeout. Retrying with
different parameters is decided by the pipeline, which passes the retry
count in; the probes never retry on their own initiative.
"""

import hashlib
import socket
import ssl
import threading
import time
import warnings
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from deploycheck.exceptions import NoCertificate, ProbeTimeout, Unreachable
from deploycheck.models.results import ProbeResponse

TLS_VERSIONS = {
    "1.0": ssl.TLSVersion.TLSv1,
    "1.1": ssl.TLSVersion.TLSv1_1,
    "1.2": ssl.TLSVersion.TLSv1_2,
    "1.3": ssl.TLSVersion.TLSv1_3,
}

USER_AGENT = "deploycheck"


class TLSAdapter(HTTPAdapter):
    """Transport adapter that pins a prepared SSL context on the pool."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs):
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self.ssl_context
        return super().init_poolmanager(*args, **kwargs)


def build_ssl_context(
    tls_min: Optional[str] = None,
    tls_max: Optional[str] = None,
    cipher_list: Optional[str] = None,
    verify_peer: bool = True,
) -> ssl.SSLContext:
    """
    Build a client SSL context.

    Args:
        tls_min: Lowest protocol version ("1.2", "1.3"), None for library default
        tls_max: Highest protocol version, None for library default
        cipher_list: OpenSSL cipher string for TLS 1.2 and below
        verify_peer: Verify the certificate chain and hostname

    Raises:
        ValueError: On an unknown protocol version or an unusable cipher string
    """
    context = ssl.create_default_context()
    if not verify_peer:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    if tls_min:
        context.minimum_version = _tls_version(tls_min)
    if tls_max:
        context.maximum_version = _tls_version(tls_max)
    if cipher_list:
        try:
            context.set_ciphers(cipher_list)
        except ssl.SSLError as e:
            raise ValueError(f"Invalid cipher list '{cipher_list}': {e}")

    return context


def _tls_version(version: str) -> ssl.TLSVersion:
    try:
        return TLS_VERSIONS[version]
    except KeyError:
        raise ValueError(
            f"Unknown TLS version '{version}' (expected one of {', '.join(TLS_VERSIONS)})"
        )


def tcp_reachable(host: str, port: int, timeout: float) -> bool:
    """True iff a TCP connection to host:port is established within timeout."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def http_get(url: str, connect_timeout: float, max_time: float) -> ProbeResponse:
    """
    Plaintext GET.

    Raises:
        Unreachable: Connection refused, reset or name resolution failure
        ProbeTimeout: Connect or read exceeded its timeout
    """
    transcript: list[str] = [f"* GET {url}"]
    with requests.Session() as session:
        return _fetch(session, url, connect_timeout, max_time, transcript, verify=True)


def https_get(
    url: str,
    tls_min: Optional[str] = None,
    tls_max: Optional[str] = None,
    cipher_list: Optional[str] = None,
    verify_peer: bool = True,
    retry_count: int = 0,
    retry_delay: float = 1,
    connect_timeout: float = 10,
    max_time: float = 15,
) -> ProbeResponse:
    """
    HTTPS GET with an explicit TLS configuration.

    Makes 1 + retry_count attempts spaced by retry_delay. The error raised
    after the last attempt carries the transcript of every attempt.

    Raises:
        Unreachable: Every attempt failed to connect or to complete the handshake
        ProbeTimeout: The last attempt timed out
    """
    context = build_ssl_context(tls_min, tls_max, cipher_list, verify_peer)
    attempts = 1 + max(retry_count, 0)
    transcript: list[str] = [
        f"* TLS {tls_min or 'default'}..{tls_max or 'default'}"
        f" ciphers={cipher_list or 'default'} verify={verify_peer}"
    ]

    with requests.Session() as session:
        session.mount("https://", TLSAdapter(context))

        for attempt in range(1, attempts + 1):
            transcript.append(f"* attempt {attempt}/{attempts}: GET {url}")
            try:
                with warnings.catch_warnings():
                    # InsecureRequestWarning on unverified probes
                    warnings.simplefilter("ignore")
                    return _fetch(
                        session,
                        url,
                        connect_timeout,
                        max_time,
                        transcript,
                        verify=verify_peer,
                    )
            except (Unreachable, ProbeTimeout):
                if attempt == attempts:
                    raise
                transcript.append(f"* retrying in {retry_delay}s")
                time.sleep(retry_delay)


def _fetch(
    session: requests.Session,
    url: str,
    connect_timeout: float,
    max_time: float,
    transcript: list[str],
    verify: bool,
) -> ProbeResponse:
    """
    One GET whose connect, headers and body together finish within max_time.

    The requests timeout only bounds each socket read, so the request runs
    on a daemon worker and is abandoned once max_time has passed.
    """
    outcome: dict = {}

    def request():
        try:
            outcome["response"] = session.get(
                url,
                timeout=(connect_timeout, max_time),
                verify=verify,
                headers={"User-Agent": USER_AGENT},
                allow_redirects=False,
            )
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=request, name="deploycheck-probe", daemon=True)
    worker.start()
    worker.join(timeout=max_time)

    if worker.is_alive():
        transcript.append(f"! timeout: no complete response within {max_time}s")
        raise ProbeTimeout(
            f"Request to {url} exceeded {max_time}s",
            context="Response did not complete within the maximum request time",
            transcript="\n".join(transcript),
        )

    try:
        if "error" in outcome:
            raise outcome["error"]
        response = outcome["response"]
    except requests.exceptions.Timeout as e:
        transcript.append(f"! timeout: {e}")
        raise ProbeTimeout(
            f"Request to {url} timed out",
            context=str(e),
            transcript="\n".join(transcript),
        )
    except requests.exceptions.RequestException as e:
        transcript.append(f"! {type(e).__name__}: {e}")
        raise Unreachable(
            f"Request to {url} failed",
            context=str(e),
            transcript="\n".join(transcript),
        )

    transcript.append(f"< HTTP {response.status_code} {response.reason}")
    for name, value in response.headers.items():
        transcript.append(f"< {name}: {value}")
    transcript.append(f"< {len(response.content)} bytes")

    return ProbeResponse(
        url=url,
        status_code=response.status_code,
        body=response.text,
        headers=dict(response.headers),
        transcript="\n".join(transcript),
    )


def format_fingerprint(der: bytes) -> str:
    """SHA-256 of DER bytes as colon-separated upper-case hex."""
    digest = hashlib.sha256(der).digest()
    return ":".join(f"{b:02X}" for b in digest)


def fetch_cert_fingerprint(host: str, port: int, timeout: float) -> str:
    """
    Fetch the SHA-256 fingerprint of the leaf certificate served on host:port.

    SNI is set to host and the chain is not verified, since the certificate
    being fingerprinted may not be trusted by this machine.

    Raises:
        Unreachable: TCP connect or TLS handshake did not complete
        NoCertificate: Handshake completed without a peer certificate
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE

    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host) as tls_sock:
                der = tls_sock.getpeercert(binary_form=True)
    except OSError as e:
        # ssl.SSLError and socket.timeout are OSError subclasses
        raise Unreachable(
            f"TLS handshake with {host}:{port} failed", context=str(e) or type(e).__name__
        )

    if not der:
        raise NoCertificate(f"{host}:{port} presented no certificate")

    return format_fingerprint(der)
