from __future__ import annotations

import math
import time
from typing import Callable, List, Optional

from django.conf import settings
from django.core.cache import caches
from django.http import HttpRequest, HttpResponse, JsonResponse

DEFAULT_THROTTLE_LIMIT = 60  # requests
DEFAULT_THROTTLE_WINDOW = 60  # seconds
DEFAULT_THROTTLE_KEY_PREFIX = 'sitebuilder:throttle'


def route_name(request: HttpRequest) -> Optional[str]:
    """``namespace:url_name`` of the resolved route, or ``None`` before resolution."""

    match = getattr(request, 'resolver_match', None)
    if match is None:
        return None
    return f'{match.namespace}:{match.url_name}' if match.namespace else match.url_name


def client_address(request: HttpRequest) -> str:
    forwarded = request.META.get(getattr(settings, 'THROTTLE_IP_HEADER', 'HTTP_X_FORWARDED_FOR'))
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR') or 'unknown'


class RouteRateLimitMiddleware:
    """Limit how often one client may hit the routes in ``THROTTLED_ROUTES``.

    Hits are kept per route and client as a list of timestamps in the cache;
    a request is refused with 429 once ``limit`` hits fall inside the last
    ``window`` seconds. The check runs in ``process_view`` because the route
    is only known after URL resolution.
    """

    def __init__(
        self,
        get_response: Callable[[HttpRequest], HttpResponse],
        *,
        limit: int | None = None,
        window: int | None = None,
        cache_alias: str = 'default',
        key_prefix: str | None = None,
    ) -> None:
        self.get_response = get_response
        self.limit = limit or getattr(settings, 'THROTTLE_LIMIT', DEFAULT_THROTTLE_LIMIT)
        self.window = window or getattr(settings, 'THROTTLE_WINDOW', DEFAULT_THROTTLE_WINDOW)
        self.cache = caches[cache_alias]
        self.key_prefix = key_prefix or getattr(settings, 'THROTTLE_KEY_PREFIX', DEFAULT_THROTTLE_KEY_PREFIX)

    def __call__(self, request: HttpRequest) -> HttpResponse:
        return self.get_response(request)

    def process_view(self, request: HttpRequest, view_func, view_args, view_kwargs) -> HttpResponse | None:
        name = route_name(request)
        if name is None or name not in getattr(settings, 'THROTTLED_ROUTES', ()):
            return None

        key = f'{self.key_prefix}:{name}:{client_address(request)}'
        now = time.time()
        hits: List[float] = [hit for hit in self.cache.get(key, []) if hit > now - self.window]
        if len(hits) >= self.limit:
            retry_after = max(1, math.ceil(hits[0] + self.window - now))
            return self.too_many_requests(name, retry_after)

        hits.append(now)
        self.cache.set(key, hits, timeout=self.window)
        return None

    def too_many_requests(self, name: str, retry_after: int) -> JsonResponse:
        response = JsonResponse(
            {
                'detail': 'Rate limit exceeded. Try again shortly.',
                'route': name,
                'retry_after': retry_after,
            },
            status=429,
        )
        response['Retry-After'] = str(retry_after)
        return response


def route_rate_limit(get_response: Callable[[HttpRequest], HttpResponse]) -> RouteRateLimitMiddleware:
    return RouteRateLimitMiddleware(get_response)
