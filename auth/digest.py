"""
auth/digest.py -- HTTP Digest Authentication (RFC 2617, qop=auth, MD5).

The login handshake is a two-state exchange:

  CHALLENGING     request carries no Authorization header. The server answers
                  401 with issue_challenge() in WWW-Authenticate.
  AUTHENTICATING  request carries "Authorization: Digest ...". authenticate()
                  recomputes the response from the stored HA1 and either
                  returns the User or raises AuthenticationFailed.

Hash chain (all lowercase hex MD5):
  HA1      = MD5(username:realm:password)          stored at registration
  HA2      = MD5(method:uri)
  response = MD5(HA1:nonce:nc:cnonce:qop:HA2)      qop == "auth"
           = MD5(HA1:nonce:HA2)                    no qop (RFC 2069 clients)

MD5 is mandated by the Digest scheme clients implement, not chosen for
strength. It is used only here. Nothing else in the codebase hashes with it.

Every failure mode (unparseable header, missing field, unknown user, realm
mismatch, uri mismatch, stale nonce, wrong response) surfaces as the same
AuthenticationFailed so nothing downstream can tell the client which check
failed.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import threading
import time
import uuid
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from auth.models import DigestChallenge, DigestCredentials, User
from core.errors import AppError, ErrorCode

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("loverse.auth.digest")

REALM = "Loverse"
QOP = "auth"
_SCHEME_PREFIX = "Digest "


class AuthenticationFailed(AppError):
    """The single outcome of every rejected Digest login."""

    def __init__(self) -> None:
        super().__init__(ErrorCode.AUTH_INVALID_CREDENTIALS, http_status=401)


# ---------------------------------------------------------------------------
# Hash primitives
# ---------------------------------------------------------------------------


def _md5_hex(data: str) -> str:
    return hashlib.md5(data.encode("utf-8")).hexdigest()  # noqa: S324 # nosec B324 -- Digest protocol hash


def derive_credential_hash(username: str, password: str, realm: str = REALM) -> str:
    """Return HA1 = MD5(username:realm:password) as lowercase hex.

    Called once at registration (and on password change). The result is what
    UserStore persists; the plaintext is dropped by the caller right after.
    """
    if not isinstance(username, str) or not isinstance(password, str):
        raise TypeError("username and password must be str")
    return _md5_hex(f"{username}:{realm}:{password}")


# Timing equalization: unknown usernames are verified against this HA1 so the
# response time matches a real mismatch.
_DUMMY_HA1 = derive_credential_hash("loverse_timing_dummy", uuid.uuid4().hex)


def compute_response(
    ha1: str,
    method: str,
    uri: str,
    nonce: str,
    nc: str | None = None,
    cnonce: str | None = None,
    qop: str | None = None,
) -> str:
    """Return the expected Digest response for the given parameters.

    Shared by the server-side verifier and the client helper below, so both
    sides of the handshake run the same chain.
    """
    ha2 = _md5_hex(f"{method}:{uri}")
    if qop == QOP:
        return _md5_hex(f"{ha1}:{nonce}:{nc}:{cnonce}:{qop}:{ha2}")
    return _md5_hex(f"{ha1}:{nonce}:{ha2}")


# ---------------------------------------------------------------------------
# Challenge
# ---------------------------------------------------------------------------


def new_challenge(realm: str = REALM) -> DigestChallenge:
    return DigestChallenge(realm=realm, nonce=str(uuid.uuid4()), opaque=str(uuid.uuid4()), qop=QOP)


def issue_challenge(realm: str = REALM, nonces: NonceRegistry | None = None) -> str:
    """Return a WWW-Authenticate header value for a fresh challenge.

    Stateless unless a NonceRegistry is supplied, in which case the nonce is
    recorded so authenticate() can accept it exactly once.
    """
    challenge = new_challenge(realm)
    if nonces is not None:
        nonces.issue(challenge.nonce)
    return challenge.to_header()


# ---------------------------------------------------------------------------
# Authorization header parsing
# ---------------------------------------------------------------------------


def parse_authorization_header(header: str) -> dict[str, str] | None:
    """Split a "Digest k=v, k="v", ..." header into a dict.

    Returns None if the header does not use the Digest scheme. Values may be
    quoted or bare; each pair is split on its first "=" only so padded
    base64-style values survive intact. Pairs without a key are dropped.
    """
    if not header.startswith(_SCHEME_PREFIX):
        return None

    params: dict[str, str] = {}
    for part in header[len(_SCHEME_PREFIX) :].split(","):
        key, _, value = part.strip().partition("=")
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]
        if key:
            params[key] = value
    return params


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


def _uri_matches(uri: str, request_path: str) -> bool:
    # Clients may send the absolute form; only the path is bound.
    return urlsplit(uri).path == request_path


def verify(
    method: str,
    header: str,
    stored_hash: str,
    realm: str = REALM,
    request_path: str | None = None,
) -> bool:
    """Return True iff the header's response matches the one derived from stored_hash.

    Fails closed on an unparseable header or a realm mismatch. When
    request_path is given, the path of the header's uri must equal it,
    otherwise the signed target and the executed target could differ.
    """
    params = parse_authorization_header(header)
    if params is None:
        return False
    if params.get("realm") != realm:
        return False
    uri = params.get("uri", "")
    if request_path is not None and not _uri_matches(uri, request_path):
        return False
    if params.get("qop") == QOP and not (params.get("nc") and params.get("cnonce")):
        return False

    expected = compute_response(
        stored_hash,
        method,
        uri,
        params.get("nonce", ""),
        nc=params.get("nc"),
        cnonce=params.get("cnonce"),
        qop=params.get("qop"),
    )
    # Header values arrive as Latin-1 text; compare bytes so non-ASCII input fails closed.
    presented = params.get("response", "").encode("utf-8", "surrogatepass")
    return hmac.compare_digest(expected.encode("ascii"), presented)


def authenticate(
    store: UserStore,
    method: str,
    header: str,
    realm: str = REALM,
    request_path: str | None = None,
    nonces: NonceRegistry | None = None,
) -> User:
    """Resolve a Digest Authorization header to the User it proves.

    Raises AuthenticationFailed for every kind of rejection. Store errors are
    not caught here; they propagate and become a 500.
    """
    params = parse_authorization_header(header)
    creds = DigestCredentials.from_params(params) if params is not None else None
    if creds is None:
        logger.info("Digest login rejected: malformed Authorization header")
        raise AuthenticationFailed()

    user = store.get_by_username(creds.username)
    ha1 = user.ha1 if user is not None else _DUMMY_HA1
    ok = verify(method, header, ha1, realm=realm, request_path=request_path)

    if user is None or not ok:
        logger.info("Digest login rejected for username=%r", creds.username)
        raise AuthenticationFailed()

    # Consumed only after the hash checks out, so a forged request cannot burn
    # a legitimate client's nonce.
    if nonces is not None and not nonces.consume(creds.nonce):
        logger.info("Digest login rejected for username=%r: stale or replayed nonce", creds.username)
        raise AuthenticationFailed()

    return user


# ---------------------------------------------------------------------------
# Client side
# ---------------------------------------------------------------------------


def build_authorization_header(
    username: str,
    password: str,
    method: str,
    uri: str,
    challenge: dict[str, str],
    nc: str = "00000001",
    cnonce: str | None = None,
) -> str:
    """Answer a parsed WWW-Authenticate challenge with an Authorization value.

    challenge is the dict parse_authorization_header() returns for the
    WWW-Authenticate value (same "Digest " prefix and k=v grammar).
    """
    realm = challenge["realm"]
    nonce = challenge["nonce"]
    qop = challenge.get("qop")
    cnonce = cnonce or uuid.uuid4().hex
    ha1 = derive_credential_hash(username, password, realm=realm)
    response = compute_response(ha1, method, uri, nonce, nc=nc, cnonce=cnonce, qop=qop)

    parts = [
        f'username="{username}"',
        f'realm="{realm}"',
        f'nonce="{nonce}"',
        f'uri="{uri}"',
    ]
    if qop == QOP:
        parts += [f"qop={qop}", f"nc={nc}", f'cnonce="{cnonce}"']
    parts.append(f'response="{response}"')
    if challenge.get("opaque"):
        parts.append(f'opaque="{challenge["opaque"]}"')
    return _SCHEME_PREFIX + ", ".join(parts)


# ---------------------------------------------------------------------------
# Optional nonce tracking
# ---------------------------------------------------------------------------


class NonceRegistry:
    """Issued-nonce ledger giving each challenge a TTL and single use.

    In-process only: with several workers a nonce issued by one worker is
    unknown to the others, so enable DIGEST_NONCE_TRACKING only for a single
    worker or sticky routing.
    """

    def __init__(self, ttl: int = 300) -> None:
        self.ttl = ttl
        self._issued: dict[str, float] = {}
        self._lock = threading.Lock()

    def issue(self, nonce: str) -> None:
        with self._lock:
            self._issued[nonce] = time.monotonic() + self.ttl

    def consume(self, nonce: str) -> bool:
        """Remove nonce and return True if it was issued and has not expired."""
        with self._lock:
            expires_at = self._issued.pop(nonce, None)
        return expires_at is not None and expires_at > time.monotonic()

    def purge_expired(self) -> int:
        now = time.monotonic()
        with self._lock:
            stale = [n for n, exp in self._issued.items() if exp <= now]
            for n in stale:
                del self._issued[n]
        return len(stale)

    def __len__(self) -> int:
        return len(self._issued)
