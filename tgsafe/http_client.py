"""HTTP session factory with transport-level retries and timeouts."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import HttpCfg

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


def build_retry(cfg: HttpCfg) -> Retry:
    """Retry policy that resends the same payload after a transient failure.

    POST is allowed because ``sendMessage`` is only retried on connection
    errors and on the statuses in :data:`RETRY_STATUSES`, never on a 4xx
    rejection of the payload itself.
    """

    return Retry(
        total=cfg.retry_total,
        backoff_factor=cfg.backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"POST"}),
        respect_retry_after_header=True,
        raise_on_status=False,
    )


@lru_cache()
def session(cfg: Optional[HttpCfg] = None) -> Session:
    cfg = cfg or HttpCfg()
    sess = requests.Session()
    sess.trust_env = False
    adapter = HTTPAdapter(max_retries=build_retry(cfg))
    sess.mount("http://", adapter)
    sess.mount("https://", adapter)
    logger.debug(
        "HTTP session ready: retries=%s backoff=%s timeout=%s",
        cfg.retry_total,
        cfg.backoff_factor,
        cfg.timeout,
    )
    return sess


__all__ = ["RETRY_STATUSES", "build_retry", "session"]
