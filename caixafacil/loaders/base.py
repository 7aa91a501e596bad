# caixafacil/loaders/base.py
import json
import logging
import urllib.error
import urllib.request
from abc import ABC, abstractmethod

from caixafacil.errors import AggregatorError

logger = logging.getLogger(__name__)


class BaseLoader(ABC):
    #: provenance written to the ``notes`` column of imported rows
    source_label = "Importado"

    def __init__(self, config=None):
        self.config = config or {}

    @abstractmethod
    def load(self, source):
        """
        Yield Transaction instances from *source* (a file path for statement
        loaders, an item/consent id for aggregator loaders).
        """
        pass

    def notes(self, now):
        return self.source_label


def request_json(url, payload=None, headers=None, method=None, timeout=30):
    """Send a JSON request with urllib and return the decoded body."""
    data = json.dumps(payload).encode() if payload is not None else None
    req = urllib.request.Request(url, data=data, method=method or ("POST" if data else "GET"))
    req.add_header("Accept", "application/json")
    if data is not None:
        req.add_header("Content-Type", "application/json")
    for name, value in (headers or {}).items():
        req.add_header(name, value)
    logger.debug("%s %s", req.get_method(), url)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return json.load(resp)
    except urllib.error.HTTPError as e:
        raise AggregatorError(f"{req.get_method()} {url} failed with HTTP {e.code}") from e
    except (urllib.error.URLError, ValueError) as e:
        raise AggregatorError(f"{req.get_method()} {url} failed: {e}") from e
