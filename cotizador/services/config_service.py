"""Application configuration rows (company name, logo) stored in app_config."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from cotizador.models import AppConfig

logger = logging.getLogger(__name__)

COMPANY_NAME = 'company_name'
COMPANY_TAGLINE = 'company_tagline'
LOGO_URL = 'logo_url'
LOGO_KEY = 'logo_key'

KNOWN_KEYS = (COMPANY_NAME, COMPANY_TAGLINE, LOGO_URL, LOGO_KEY)


def get_config(session: Session, key: str, default: Optional[str] = None) -> Optional[str]:
    row = session.get(AppConfig, key)
    if row is None or row.value in (None, ''):
        return default
    return row.value


def set_config(session: Session, key: str, value: Optional[str], commit: bool = True) -> AppConfig:
    """Upsert one configuration row."""
    row = session.get(AppConfig, key)
    if row is None:
        row = AppConfig(key=key)
        session.add(row)
    row.value = value
    if commit:
        try:
            session.commit()
        except Exception:
            session.rollback()
            raise
    return row


def seed_defaults(session: Session, company_name: str, tagline: str) -> None:
    """Create missing configuration rows (used by `flask init-db`)."""
    defaults = {COMPANY_NAME: company_name, COMPANY_TAGLINE: tagline, LOGO_URL: None, LOGO_KEY: None}
    for key, value in defaults.items():
        if session.get(AppConfig, key) is None:
            session.add(AppConfig(key=key, value=value))
    session.commit()


def replace_logo(session: Session, storage, file) -> str:
    """
    Upload a new logo and point the configuration at it.

    The file is validated by the storage service before anything is sent.
    The previous object is removed after the new one is stored.
    """
    previous_key = get_config(session, LOGO_KEY)

    key, url = storage.upload_logo(file)
    set_config(session, LOGO_URL, url, commit=False)
    set_config(session, LOGO_KEY, key, commit=False)
    try:
        session.commit()
    except Exception:
        session.rollback()
        storage.delete_file(key)
        raise

    if previous_key and previous_key != key:
        storage.delete_file(previous_key)

    logger.info(f"[STORAGE] Logo replaced: {key}")
    return url


def remove_logo(session: Session, storage) -> None:
    key = get_config(session, LOGO_KEY)
    set_config(session, LOGO_URL, None, commit=False)
    set_config(session, LOGO_KEY, None, commit=False)
    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
    if key:
        storage.delete_file(key)
    logger.info("[STORAGE] Logo removed")


def load_logo_bytes(session: Session, storage) -> Optional[bytes]:
    """Logo bytes for the PDF, or None (no logo configured or not retrievable)."""
    key = get_config(session, LOGO_KEY)
    if not key:
        return None
    return storage.download(key)
