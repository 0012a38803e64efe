# File: apiforge/generators/auth.py
"""
NexaFlow APIForge - Auth Generator
===================================
Emits:

- ``<pkg>/hashing.py`` whenever auth is enabled or any field is secret
  (passlib ``CryptContext`` with bcrypt).
- ``<pkg>/auth.py`` when the strategy is not ``none``: the ``Claims``
  shape, token issuance and verification (python-jose, HS256), the
  subset-based ``is_authorized`` check and the ``require_access``
  dependency. Token strategy reads a bearer header; session strategy reads
  the ``session`` cookie and adds a small ``/auth/session`` router.

Access control is deny-by-default: no credentials → 401, missing role or
scope → 403, an empty requirement means "authenticated is enough".
"""

from __future__ import annotations

import logging
from typing import List

from apiforge.generators.base import BaseGenerator
from apiforge.models import AuthStrategy, GeneratedFile

logger: logging.Logger = logging.getLogger("apiforge.generators.auth")


class AuthGenerator(BaseGenerator):
    """Credential hashing and request gating."""

    name: str = "auth"

    def generate(self) -> List[GeneratedFile]:
        ctx = self._ctx
        files: List[GeneratedFile] = []
        if ctx.needs_hashing():
            files.append(self.generate_hashing())
        if ctx.auth_enabled:
            ctx.checkpoint("auth module")
            files.append(self.generate_auth())
        logger.debug("Auth generator (%s) produced %d file(s).", ctx.auth_strategy, len(files))
        return files

    # ===================================================================
    # Hashing
    # ===================================================================

    def generate_hashing(self) -> GeneratedFile:
        i = self._indent
        lines: List[str] = self._module_header("Credential hashing.")
        lines.extend(
            [
                "from __future__ import annotations",
                "",
                "from passlib.context import CryptContext",
                "",
                '_context = CryptContext(schemes=["bcrypt"], deprecated="auto")',
                "",
                "",
                "def hash_secret(plain: str) -> str:",
                f'{i}"""Hash a plaintext secret for storage."""',
                f"{i}return _context.hash(plain)",
                "",
                "",
                "def verify_secret(plain: str, hashed: str) -> bool:",
                f'{i}"""Check a plaintext secret against a stored hash."""',
                f"{i}return _context.verify(plain, hashed)",
            ]
        )
        return self._file(
            self._ctx.pkg_path("hashing.py"),
            lines,
            provides={"hashing:hash_secret", "hashing:verify_secret"},
        )

    # ===================================================================
    # Claims, tokens and gating
    # ===================================================================

    def generate_auth(self) -> GeneratedFile:
        ctx = self._ctx
        i, ii, iii = self._indent, self._double_indent, self._triple_indent
        session: bool = ctx.auth_strategy == AuthStrategy.SESSION.value
        default_roles: str = ", ".join(f'"{r}"' for r in ctx.graph.config.auth.default_roles)

        fastapi_names: List[str] = ["Depends", "HTTPException", "status"]
        if session:
            fastapi_names.extend(["APIRouter", "Request", "Response"])
        lines: List[str] = self._module_header(
            f"Authentication and authorization ({ctx.auth_strategy} strategy)."
        )
        lines.extend(
            [
                "from __future__ import annotations",
                "",
                "from datetime import datetime, timedelta, timezone",
                "from typing import Awaitable, Callable, Iterable, List, Optional, Sequence",
                "",
                f"from fastapi import {', '.join(sorted(fastapi_names))}",
            ]
        )
        if not session:
            lines.append("from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer")
        lines.extend(
            [
                "from jose import JWTError, jwt",
                "from pydantic import BaseModel, Field",
                "",
                f"from {ctx.pkg_module('config')} import settings",
                "",
                'ALGORITHM = "HS256"',
                f"DEFAULT_ROLES: List[str] = [{default_roles}]",
            ]
        )
        if session:
            lines.append('SESSION_COOKIE = "session"')
        lines.extend(
            [
                "",
                "",
                "class Claims(BaseModel):",
                f'{i}"""Identity carried by a verified credential."""',
                "",
                f"{i}sub: str",
                f"{i}roles: List[str] = Field(default_factory=list)",
                f"{i}scopes: List[str] = Field(default_factory=list)",
                f"{i}iat: int",
                f"{i}exp: int",
                "",
                "",
                "def issue_token(",
                f"{i}subject: str,",
                f"{i}roles: Optional[Sequence[str]] = None,",
                f"{i}scopes: Optional[Sequence[str]] = None,",
                f"{i}expires_minutes: Optional[int] = None,",
                ") -> str:",
                f'{i}"""Sign a token for *subject*; roles default to ``DEFAULT_ROLES``."""',
                f"{i}issued = datetime.now(timezone.utc)",
                f"{i}expires = issued + timedelta(minutes=expires_minutes or settings.token_expiry_minutes)",
                f"{i}payload = {{",
                f'{ii}"sub": subject,',
                f'{ii}"roles": list(roles if roles is not None else DEFAULT_ROLES),',
                f'{ii}"scopes": list(scopes or []),',
                f'{ii}"iat": int(issued.timestamp()),',
                f'{ii}"exp": int(expires.timestamp()),',
                f"{i}}}",
                f"{i}return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)",
                "",
                "",
                "def verify_token(token: str) -> Claims:",
                f'{i}"""Decode and check a token; raise 401 when invalid or expired."""',
                f"{i}try:",
                f"{ii}payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])",
                f"{i}except JWTError as exc:",
                f"{ii}raise HTTPException(",
                f"{iii}status_code=status.HTTP_401_UNAUTHORIZED,",
                f'{iii}detail="Invalid or expired credentials.",',
                f"{ii}) from exc",
                f"{i}return Claims.model_validate(payload)",
                "",
                "",
                "def is_authorized(required: Iterable[str], granted: Iterable[str]) -> bool:",
                f'{i}"""True when every required item is granted (empty requirement passes)."""',
                f"{i}return set(required) <= set(granted)",
                "",
                "",
            ]
        )

        if session:
            lines.extend(
                [
                    "async def current_claims(request: Request) -> Claims:",
                    f'{i}"""Claims from the session cookie."""',
                    f"{i}token = request.cookies.get(SESSION_COOKIE)",
                    f"{i}if not token:",
                    f"{ii}raise HTTPException(",
                    f"{iii}status_code=status.HTTP_401_UNAUTHORIZED,",
                    f'{iii}detail="Not authenticated.",',
                    f"{ii})",
                    f"{i}return verify_token(token)",
                ]
            )
        else:
            lines.extend(
                [
                    "_bearer = HTTPBearer(auto_error=False)",
                    "",
                    "",
                    "async def current_claims(",
                    f"{i}credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),",
                    ") -> Claims:",
                    f'{i}"""Claims from the ``Authorization: Bearer`` header."""',
                    f"{i}if credentials is None:",
                    f"{ii}raise HTTPException(",
                    f"{iii}status_code=status.HTTP_401_UNAUTHORIZED,",
                    f'{iii}detail="Not authenticated.",',
                    f'{iii}headers={{"WWW-Authenticate": "Bearer"}},',
                    f"{ii})",
                    f"{i}return verify_token(credentials.credentials)",
                ]
            )

        lines.extend(
            [
                "",
                "",
                "def require_access(",
                f"{i}roles: Sequence[str] = (),",
                f"{i}scopes: Sequence[str] = (),",
                ") -> Callable[..., Awaitable[Claims]]:",
                f'{i}"""Dependency factory: authenticated caller holding every role and scope."""',
                "",
                f"{i}async def dependency(claims: Claims = Depends(current_claims)) -> Claims:",
                f"{ii}if not is_authorized(roles, claims.roles) or not is_authorized(scopes, claims.scopes):",
                f"{iii}raise HTTPException(",
                f"{iii}{i}status_code=status.HTTP_403_FORBIDDEN,",
                f'{iii}{i}detail="Insufficient permissions.",',
                f"{iii})",
                f"{ii}return claims",
                "",
                f"{i}return dependency",
            ]
        )

        provides: List[str] = ["auth:require_access", "auth:issue_token", "auth:verify_token"]
        if session:
            provides.append("auth:session_router")
            lines.extend(
                [
                    "",
                    "",
                    "def start_session(response: Response, subject: str, roles: Optional[Sequence[str]] = None) -> str:",
                    f'{i}"""Issue a token and store it in the session cookie. Call after checking credentials."""',
                    f"{i}token = issue_token(subject, roles=roles)",
                    f"{i}response.set_cookie(",
                    f"{ii}SESSION_COOKIE,",
                    f"{ii}token,",
                    f"{ii}httponly=True,",
                    f'{ii}samesite="lax",',
                    f"{ii}max_age=settings.token_expiry_minutes * 60,",
                    f"{i})",
                    f"{i}return token",
                    "",
                    "",
                    "def end_session(response: Response) -> None:",
                    f"{i}response.delete_cookie(SESSION_COOKIE)",
                    "",
                    "",
                    'session_router = APIRouter(prefix="/auth/session", tags=["Auth"])',
                    "",
                    "",
                    '@session_router.get("", response_model=Claims, summary="Current session")',
                    "async def read_session(claims: Claims = Depends(current_claims)) -> Claims:",
                    f"{i}return claims",
                    "",
                    "",
                    '@session_router.delete("", status_code=204, summary="Log out")',
                    "async def delete_session(response: Response) -> None:",
                    f"{i}end_session(response)",
                ]
            )

        return self._file(ctx.pkg_path("auth.py"), lines, provides=provides, requires={"config:settings"})


__all__: List[str] = ["AuthGenerator"]

logger.debug("apiforge.generators.auth loaded.")
