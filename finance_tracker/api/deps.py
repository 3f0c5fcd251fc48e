"""Shared FastAPI dependencies for the routers."""

from typing import cast

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..auth import TokenIssuer, get_token_issuer
from ..config import Settings
from ..database import get_db
from ..identity import CredentialVerifier
from ..sessions import SessionService


def get_settings(request: Request) -> Settings:
    return cast(Settings, request.app.state.settings)


def get_credential_verifier(request: Request) -> CredentialVerifier:
    return cast(CredentialVerifier, request.app.state.credential_verifier)


def get_session_service(
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
    verifier: CredentialVerifier = Depends(get_credential_verifier),
    settings: Settings = Depends(get_settings),
) -> SessionService:
    """Build the token lifecycle service bound to this request's session."""
    return SessionService(
        db,
        issuer=issuer,
        verifier=verifier,
        token_pepper=settings.token_pepper,
    )
