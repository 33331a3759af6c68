import json
import logging
from typing import Any, Optional, Union, Tuple

import requests
from requests import Response

from pwmonitor.models import GatewayEndpoint, GatewayResponse

log = logging.getLogger(__name__)


class GatewayClient:
    """
    HTTPS transport to the local Tesla Energy Gateway.

    GET requests authenticate with the AuthCookie session cookie, POST requests
    with a bearer Authorization header. The gateway serves a self-signed
    certificate so TLS verification is disabled. Transport failures are logged
    and reported as None; nothing is raised to the caller.
    """

    def __init__(self, endpoint: GatewayEndpoint, timeout: Union[int, float, Tuple[int, int]] = 5,
                 poolmaxsize: int = 10):
        self.endpoint = endpoint
        self.timeout = timeout
        if poolmaxsize > 0:
            # Create session object for http connection re-use
            self.session = requests.Session()
            # noinspection PyUnresolvedReferences
            a = requests.adapters.HTTPAdapter(pool_maxsize=poolmaxsize)
            self.session.mount('https://', a)
        else:
            # Disable http persistent connections
            self.session = requests

    def get(self, api: str, token: Optional[str] = None) -> Optional[GatewayResponse]:
        url = self.endpoint.url(api)
        cookies = {'AuthCookie': token} if token else None
        log.debug(' -- gateway: GET %s' % url)
        try:
            r: Response = self.session.get(url, cookies=cookies, verify=False, timeout=self.timeout)
        except requests.exceptions.Timeout:
            log.error('ERROR Timeout waiting for Powerwall API %s' % url)
            return None
        except requests.exceptions.ConnectionError:
            log.error('ERROR Unable to connect to Powerwall at %s' % url)
            return None
        except Exception as exc:
            log.error(f'ERROR Unknown error connecting to Powerwall at {url}: {exc}')
            return None
        return self._response(r, url)

    def post(self, api: str, payload: Optional[dict], token: Optional[str] = None) -> Optional[GatewayResponse]:
        url = self.endpoint.url(api)
        headers = {'Authorization': 'Bearer ' + token} if token else None
        log.debug(' -- gateway: POST %s' % url)
        try:
            r: Response = self.session.post(url, headers=headers, json=payload, verify=False,
                                            timeout=self.timeout)
        except requests.exceptions.Timeout:
            log.error('ERROR Timeout waiting for Powerwall API %s' % url)
            return None
        except requests.exceptions.ConnectionError:
            log.error('ERROR Unable to connect to Powerwall at %s' % url)
            return None
        except Exception as exc:
            log.error('ERROR Unknown error connecting to Powerwall at %s: %s' % (url, exc))
            return None
        return self._response(r, url)

    def close(self):
        if isinstance(self.session, requests.Session):
            self.session.close()

    @staticmethod
    def _response(r: Response, url: str) -> GatewayResponse:
        if r.status_code == 401:
            log.debug('401 Unauthorized by Powerwall API at %s' % url)
        elif r.status_code == 403:
            log.error('403 Unauthorized by Powerwall API at %s - Endpoint disabled in this firmware or '
                      'user lacks permission' % url)
        elif r.status_code == 404:
            log.error('404 Powerwall API not found at %s' % url)
        elif r.status_code == 429:
            log.error('429 Rate limited by Powerwall API at %s' % url)
        elif 400 <= r.status_code < 500:
            log.error('Unhandled HTTP response code %s at %s' % (r.status_code, url))
        elif r.status_code >= 500:
            log.error('Server-side problem at Powerwall API (status code %s) at %s' % (r.status_code, url))

        payload: Any = r.text
        if not payload:
            log.debug(f"Empty response from Powerwall at {url}")
            return GatewayResponse(r.status_code, None)
        if 'application/json' in (r.headers.get('Content-Type') or ''):
            try:
                payload = json.loads(payload)
            except Exception as exc:
                log.error(f"Unable to parse payload '{payload}' as JSON, even though it was supposed to "
                          f"be a json: {exc}")
                return GatewayResponse(r.status_code, None)
        else:
            # Some firmware answers JSON without the content type
            try:
                payload = json.loads(payload)
            except ValueError:
                log.debug(f"Non-json response from Powerwall at {url}: '{payload}', serving as is.")
        log.debug(f' -- gateway: {r.status_code} {url} body: {payload!r}')
        return GatewayResponse(r.status_code, payload)
