"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the digest /
token modules do the work; these types only carry shape between them.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A credential record as persisted by UserStore.

    ha1 is MD5("username:realm:password") in lowercase hex. The plaintext
    password is never stored; changing the password means recomputing ha1.
    Because the realm is baked into ha1, changing DIGEST_REALM invalidates
    every stored credential.
    """

    username: str
    ha1: str
    nickname: str
    id: int | None = None
    avatar_key: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class DigestChallenge:
    """One WWW-Authenticate challenge. Ephemeral, never persisted."""

    realm: str
    nonce: str
    opaque: str
    qop: str = "auth"

    def to_header(self) -> str:
        return f'Digest realm="{self.realm}", qop="{self.qop}", nonce="{self.nonce}", opaque="{self.opaque}"'


@dataclass(frozen=True)
class DigestCredentials:
    """Fields a client sends back in an Authorization: Digest header.

    Every field is client-asserted. Only realm, nonce (when nonce tracking is
    on), uri (when a request path is supplied) and response are checked.
    """

    username: str
    realm: str
    nonce: str
    uri: str
    response: str
    qop: str | None = None
    nc: str | None = None
    cnonce: str | None = None
    opaque: str | None = None

    @classmethod
    def from_params(cls, params: dict[str, str]) -> DigestCredentials | None:
        """Build from parsed header params. Returns None if a required field is absent.

        qop=auth makes nc and cnonce required too, since both enter the response hash.
        """
        required = ("username", "realm", "nonce", "uri", "response")
        if any(not params.get(k) for k in required):
            return None
        if params.get("qop") == "auth" and not (params.get("nc") and params.get("cnonce")):
            return None
        return cls(
            username=params["username"],
            realm=params["realm"],
            nonce=params["nonce"],
            uri=params["uri"],
            response=params["response"],
            qop=params.get("qop"),
            nc=params.get("nc"),
            cnonce=params.get("cnonce"),
            opaque=params.get("opaque"),
        )


@dataclass(frozen=True)
class TokenClaims:
    """Identity extracted from a verified session token."""

    user_id: int
    username: str
