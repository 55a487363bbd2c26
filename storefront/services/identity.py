"""Identity provider integration.

Sign-in happens on the provider's side; the storefront only receives the
issued identity token, verifies its signature, audience and issuer, and maps
the claims to a local profile.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx
from jose import JWTError, jwt
from loguru import logger

from ..errors import ConfigurationMissingError, MalformedInputError, TransientStoreError
from ..storage.local import LocalStore, VisitorState

GOOGLE_CERTS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ["accounts.google.com", "https://accounts.google.com"]


@dataclass
class IdentityClaims:
    """Decoded identity token claims."""

    subject: str
    name: str = ""
    email: str = ""
    picture_url: str = ""


class IdentityVerifier:
    """Verifies identity tokens issued by the identity provider."""

    def __init__(
        self,
        client_id: str,
        keys: Any = None,
        certs_url: str = GOOGLE_CERTS_URL,
        algorithms: Optional[List[str]] = None,
        issuers: Optional[List[str]] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        """Initialize verifier.

        Args:
            client_id: OAuth client id, expected as the token audience
            keys: Verification key(s); fetched from ``certs_url`` when omitted
            certs_url: JWKS endpoint of the provider
            algorithms: Accepted signing algorithms
            issuers: Accepted ``iss`` values
            http_client: Optional client used to fetch the JWKS
        """
        self.client_id = client_id
        self.keys = keys
        self.certs_url = certs_url
        self.algorithms = algorithms or ["RS256"]
        self.issuers = issuers if issuers is not None else GOOGLE_ISSUERS
        self.http_client = http_client

    def verify(self, token: str) -> IdentityClaims:
        """Verify a token and return its claims.

        Raises:
            ConfigurationMissingError: No client id configured
            MalformedInputError: Token invalid, expired or without subject
        """
        if not self.client_id:
            raise ConfigurationMissingError(
                "Login não configurado: defina o client id do provedor de identidade."
            )
        if not token:
            raise MalformedInputError("Token de login ausente.")

        try:
            payload = jwt.decode(
                token,
                self._get_keys(),
                algorithms=self.algorithms,
                audience=self.client_id,
                options={"verify_at_hash": False},
            )
        except JWTError as e:
            logger.warning(f"Rejected identity token: {e}")
            raise MalformedInputError("Token de login inválido ou expirado.") from e

        if self.issuers and payload.get("iss") not in self.issuers:
            raise MalformedInputError("Token de login emitido por um provedor desconhecido.")

        subject = str(payload.get("sub", "")).strip()
        if not subject:
            raise MalformedInputError("Token de login sem identificador de usuário.")

        return IdentityClaims(
            subject=subject,
            name=payload.get("name") or "",
            email=payload.get("email") or "",
            picture_url=payload.get("picture") or "",
        )

    def _get_keys(self) -> Any:
        """Return configured keys, fetching and caching the provider JWKS once"""
        if self.keys is not None:
            return self.keys

        try:
            if self.http_client is not None:
                response = self.http_client.get(self.certs_url, timeout=10)
            else:
                response = httpx.get(self.certs_url, timeout=10)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch identity provider keys: {e}")
            raise TransientStoreError("Não foi possível validar o login agora.") from e

        self.keys = response.json()
        return self.keys


class AuthSession:
    """Current sign-in state with change callbacks.

    The "is authorized" flag is mirrored in the local store so it survives
    restarts the way a browser session flag would.
    """

    def __init__(self, verifier: IdentityVerifier, local_store: LocalStore):
        self.verifier = verifier
        self.visitor = VisitorState(local_store)
        self.current: Optional[IdentityClaims] = None
        self._sign_in_listeners: List[Callable[[IdentityClaims], None]] = []
        self._auth_listeners: Dict[int, Callable[[Optional[IdentityClaims]], None]] = {}
        self._next_token = 0

    def on_sign_in(self, callback: Callable[[IdentityClaims], None]) -> None:
        """Register a callback for completed sign-ins"""
        self._sign_in_listeners.append(callback)

    def on_auth_change(
        self, callback: Callable[[Optional[IdentityClaims]], None]
    ) -> Callable[[], None]:
        """Subscribe to sign-in and sign-out.

        The callback is called right away with the current claims.

        Returns:
            Callable removing the subscription
        """
        self._next_token += 1
        token = self._next_token
        self._auth_listeners[token] = callback
        callback(self.current)

        def unsubscribe():
            self._auth_listeners.pop(token, None)

        return unsubscribe

    def complete_sign_in(self, token: str) -> IdentityClaims:
        """Handle the provider's "sign-in completed" event"""
        claims = self.verifier.verify(token)
        self.current = claims
        self.visitor.set_authorized(True)
        logger.info(f"User signed in: {claims.email or claims.subject}")

        for callback in list(self._sign_in_listeners):
            callback(claims)
        self._notify()
        return claims

    def logout(self) -> None:
        self.current = None
        self.visitor.set_authorized(False)
        self._notify()

    def _notify(self) -> None:
        for callback in list(self._auth_listeners.values()):
            try:
                callback(self.current)
            except Exception as e:
                logger.error(f"Auth listener failed: {e}")
