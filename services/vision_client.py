# services/vision_client.py
# Google Cloud Vision TEXT_DETECTION over REST, returning word boxes as an OcrPage.
import base64
import calendar
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as AuthRequest
from google.oauth2 import service_account

from extraction.tokens import OcrPage
from services.errors import CredentialsError, OcrProviderError
from settings import Settings

logger = logging.getLogger(__name__)

ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"
SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]
LANGUAGE_HINTS = ["pt", "pt-BR"]

TokenFetch = Callable[[], Tuple[str, Optional[float]]]


# ===================== Bearer token cache =====================
class BearerTokenCache:
    """Holds one access token with its expiry; refreshes ``skew_s`` seconds early.

    Injected into the client instead of living at module level, so tests can hand in
    a fake fetcher and clock.
    """

    def __init__(self, fetch: TokenFetch, skew_s: float = 60.0, clock: Callable[[], float] = time.time):
        self._fetch = fetch
        self._skew = skew_s
        self._clock = clock
        self._lock = threading.Lock()
        self.token: Optional[str] = None
        self.expires_at: Optional[float] = None

    def valid(self) -> bool:
        if not self.token:
            return False
        if self.expires_at is None:
            return True
        return self._clock() < self.expires_at - self._skew

    def get(self) -> str:
        with self._lock:
            if not self.valid():
                token, expires_at = self._fetch()
                if not token:
                    raise CredentialsError("Could not obtain an access token.")
                self.token, self.expires_at = token, expires_at
                logger.debug(f"Vision access token refreshed (expires_at={expires_at})")
            return self.token

    def invalidate(self) -> None:
        with self._lock:
            self.token = None
            self.expires_at = None


def service_account_fetcher(info: Dict[str, Any]) -> TokenFetch:
    if not info.get("client_email") or not info.get("private_key"):
        raise CredentialsError("Invalid service account: client_email/private_key missing.")
    try:
        creds = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    except (ValueError, GoogleAuthError) as e:
        raise CredentialsError(f"Invalid service account: {e}") from e

    def fetch() -> Tuple[str, Optional[float]]:
        try:
            creds.refresh(AuthRequest())
        except GoogleAuthError as e:
            raise CredentialsError(f"Token refresh failed: {e}") from e
        expiry = calendar.timegm(creds.expiry.utctimetuple()) if creds.expiry else None
        return creds.token, expiry

    return fetch


# ===================== Response parsing =====================
def parse_annotate_response(data: Dict[str, Any]) -> OcrPage:
    responses = data.get("responses") or [{}]
    res = responses[0] or {}
    err = res.get("error")
    if err:
        raise OcrProviderError(f"Vision API error: {err.get('message') or err}")

    anns = res.get("textAnnotations") or []
    full = res.get("fullTextAnnotation") or {}
    full_text = full.get("text") or (anns[0].get("description", "") if anns else "")

    # textAnnotations[0] is the whole text block; the rest are words
    words = []
    for a in anns[1:]:
        words.append({
            "text": a.get("description", ""),
            "vertices": (a.get("boundingPoly") or {}).get("vertices") or [],
        })

    pages = full.get("pages") or []
    width = pages[0].get("width") if pages else None
    height = pages[0].get("height") if pages else None
    return OcrPage(full_text=full_text, annotations=words, width=width, height=height)


# ===================== Client =====================
class VisionClient:
    def __init__(self, api_key: Optional[str] = None, token_cache: Optional[BearerTokenCache] = None,
                 session: Optional[requests.Session] = None, timeout: float = 20.0,
                 endpoint: str = ENDPOINT):
        if not api_key and token_cache is None:
            raise CredentialsError("Vision client needs an API key or a service account token cache.")
        self.api_key = api_key
        self.token_cache = token_cache
        self.session = session or requests.Session()
        self.timeout = timeout
        self.endpoint = endpoint
        self.calls = 0

    def _request_args(self) -> Tuple[str, Dict[str, str]]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            return f"{self.endpoint}?key={self.api_key}", headers
        headers["Authorization"] = f"Bearer {self.token_cache.get()}"
        return self.endpoint, headers

    def text_detection(self, content: bytes) -> OcrPage:
        url, headers = self._request_args()
        body = {
            "requests": [{
                "image": {"content": base64.b64encode(content).decode("ascii")},
                "features": [{"type": "TEXT_DETECTION"}],
                "imageContext": {"languageHints": LANGUAGE_HINTS},
            }]
        }
        self.calls += 1
        try:
            r = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise OcrProviderError(f"Vision API unreachable: {e}") from e
        if r.status_code == 401 and self.token_cache is not None:
            # next request fetches a fresh token; this one is not retried
            self.token_cache.invalidate()
        if not r.ok:
            raise OcrProviderError(f"Vision API failed ({r.status_code}). {(r.text or '')[:300]}")
        try:
            data = r.json()
        except ValueError as e:
            raise OcrProviderError("Vision API returned invalid JSON.") from e
        return parse_annotate_response(data)

    __call__ = text_detection


def make_vision_client(settings: Settings, session: Optional[requests.Session] = None) -> VisionClient:
    if settings.vision_api_key:
        return VisionClient(api_key=settings.vision_api_key, session=session, timeout=settings.http_timeout)
    info = settings.service_account_info()
    if not info:
        raise CredentialsError(
            "No credentials: set GCP_VISION_API_KEY (or GOOGLE_VISION_API_KEY) or GCP_KEY_BASE64 / GCP_KEY_JSON."
        )
    cache = BearerTokenCache(service_account_fetcher(info))
    return VisionClient(token_cache=cache, session=session, timeout=settings.http_timeout)
