"""Baidu AIP text censor client."""

import logging
import time
from typing import Any

import aiohttp
from pydantic import BaseModel, ValidationError

from censor_bot.config import BaiduConfig, HTTPConfig
from censor_bot.core.decision import ClassifierError, ComplianceLevel, Verdict
from censor_bot.core.logging import get_session_stats, log_classifier_call

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/2.0/token"
CENSOR_PATH = "/rest/2.0/solution/v1/text_censor/v2/user_defined"

# Error codes that mean the access token is invalid or expired
TOKEN_ERROR_CODES = frozenset({110, 111})

# Refresh the token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 60


class CensorHit(BaseModel):
    """One entry of the ``data`` list in a censor response."""

    msg: str | None = None
    conclusion: str | None = None
    type: int | None = None
    subType: int | None = None


class CensorResponse(BaseModel):
    """Text censor response.

    Example:
        {"conclusion": "疑似", "log_id": 15758897400554284, "conclusionType": 3,
         "data": [{"msg": "疑似存在恶意推广不合规", "conclusion": "疑似", "type": 12,
                   "subType": 4, "conclusionType": 3, "hits": [...]}]}
    """

    conclusion: str | None = None
    conclusionType: int | None = None
    log_id: int | None = None
    data: list[CensorHit] = []
    error_code: int | None = None
    error_msg: str | None = None


def to_verdict(response: CensorResponse) -> Verdict:
    """Convert a censor response into a Verdict.

    The first hit's message is the reason. Conclusions outside the known
    three tiers map to UNKNOWN.
    """
    level = ComplianceLevel.from_conclusion(response.conclusion)
    reason = None
    if level is not ComplianceLevel.COMPLIANT and response.data and response.data[0].msg:
        reason = response.data[0].msg
    return Verdict(level=level, reason=reason)


class BaiduTextCensor:
    """Classifies text with the Baidu user-defined text censor API."""

    def __init__(self, config: BaiduConfig, http: HTTPConfig | None = None):
        if config.api_key is None or config.secret_key is None:
            raise ValueError("Baidu api_key and secret_key must be set")
        self._config = config
        self._http = http or HTTPConfig()
        self._session: aiohttp.ClientSession | None = None
        self._token: str | None = None
        self._token_expires_at: float = 0.0

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._http.timeout_seconds)
            connector = aiohttp.TCPConnector(ssl=self._http.verify_ssl)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _post(self, path: str, params: dict[str, str], data: dict[str, str] | None = None) -> dict[str, Any]:
        url = self._config.base_url.rstrip("/") + path
        session = await self._get_session()
        try:
            async with session.post(url, params=params, data=data, proxy=self._http.proxy) as response:
                if response.status != 200:
                    raise ClassifierError(f"HTTP {response.status}: {response.reason}")
                body = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise ClassifierError(f"Request to {path} failed: {e}") from e
        except TimeoutError as e:
            raise ClassifierError(f"Request to {path} timed out after {self._http.timeout_seconds}s") from e
        except ValueError as e:
            raise ClassifierError(f"Invalid JSON from {path}: {e}") from e

        if not isinstance(body, dict):
            raise ClassifierError(f"Unexpected response from {path}: {body!r}")
        return body

    async def _get_token(self) -> str:
        """Return a cached access token, fetching a new one when needed."""
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        body = await self._post(
            TOKEN_PATH,
            params={
                "grant_type": "client_credentials",
                "client_id": self._config.api_key.get_secret_value(),
                "client_secret": self._config.secret_key.get_secret_value(),
            },
        )
        token = body.get("access_token")
        if not token:
            raise ClassifierError(
                f"Token request failed: {body.get('error_description') or body.get('error') or body}"
            )

        try:
            expires_in = float(body.get("expires_in", 0))
        except (TypeError, ValueError) as e:
            raise ClassifierError(f"Invalid token expiry {body.get('expires_in')!r}") from e
        self._token = token
        self._token_expires_at = time.monotonic() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN)
        logger.info(f"Obtained Baidu access token (expires in {expires_in:.0f}s)")
        return token

    async def classify(self, text: str) -> Verdict:
        """Classify text.

        Raises:
            ClassifierError: On transport failures or an error response
        """
        token = await self._get_token()
        try:
            body = await self._post(CENSOR_PATH, params={"access_token": token}, data={"text": text})
        except ClassifierError as e:
            log_classifier_call("Text Censor", text, error=str(e))
            raise

        get_session_stats().increment_api_call("baidu.text_censor")
        log_classifier_call("Text Censor", text, response=body)

        try:
            response = CensorResponse.model_validate(body)
        except ValidationError as e:
            raise ClassifierError(f"Malformed censor response: {e}") from e

        if response.error_code is not None:
            if response.error_code in TOKEN_ERROR_CODES:
                self._token = None
            raise ClassifierError(f"Censor error {response.error_code}: {response.error_msg}")

        verdict = to_verdict(response)
        logger.debug(f"Censor log_id={response.log_id} -> {verdict}")
        return verdict
