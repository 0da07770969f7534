import os
import logging
import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()


def _base_url() -> str:
    fqdn = os.environ.get("CHAIN_BASE_FQDN")
    if not fqdn:
        raise RuntimeError("Environment variable 'CHAIN_BASE_FQDN' is not set")
    return "https://" + fqdn


def open_session():
    """Open a requests session to the chain gateway and fetch CSRF.

    Returns
    -------
    tuple[requests.Session, str]
        The initialized session and CSRF token string.

    Raises
    ------
    RuntimeError
        If ``CHAIN_BASE_FQDN`` is not set or the session cannot be
        established, including when the server returns no cookies or a CSRF
        token cannot be retrieved.
    """
    url = _base_url()

    session = requests.Session()
    try:
        response = session.get(url)
        response.raise_for_status()

        if session.cookies:
            # Count only; cookie values stay out of the logs.
            logger.debug(f"Received {len(session.cookies)} cookies from gateway")
        else:
            raise RuntimeError("Gateway did not return any cookies")

        csrf_token = response.cookies.get("csrftoken")
        if not csrf_token:
            raise RuntimeError("Gateway did not return a CSRF token")
        logger.debug("CSRF token acquired")
        return session, csrf_token

    except Exception as e:
        logger.critical(f"Error occurred while starting gateway session: {e}")
        raise RuntimeError(f"Failed to establish session: {e}") from e


def get_jwt_token(session: requests.Session) -> str:
    """Obtain a JWT access token using the raffle operator credentials.

    Parameters
    ----------
    session : requests.Session
        A live session for the chain gateway.

    Returns
    -------
    str
        The JWT access token string.

    Raises
    ------
    RuntimeError
        If the gateway location is not configured.
    requests.HTTPError
        If the login request fails.
    KeyError
        If the response payload does not include an ``"access"`` field.
    """
    credential = {
        "username": os.environ.get("CHAIN_ADMIN_USERNAME"),
        "password": os.environ.get("CHAIN_ADMIN_PASSWORD"),
    }
    logger.debug("Attempting JWT login with configured operator username")

    response = session.post(_base_url() + "/api/v1/auth/jwt-token", json=credential)
    response.raise_for_status()

    # Response body carries the token; do not log it.
    logger.debug("JWT token response received (content redacted)")
    return response.json()["access"]
