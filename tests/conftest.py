import json
from pathlib import Path

import httpx
import pytest

from product_updater.environment import SiteInfo
from product_updater.integration import Integration
from product_updater.models import Product
from product_updater.store import MemoryStore

FIXTURES = Path(__file__).parent / "fixtures"
API_URL = "https://api.example.com/wp-json/wp-repo/v3"
FILE_PATH = "my-plugin/my-plugin.php"


def load_fixture(name):
    return json.loads((FIXTURES / name).read_text(encoding="utf-8"))


def load_fixture_raw(name):
    return (FIXTURES / name).read_text(encoding="utf-8")


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeServer:
    """Answers update server endpoints from canned replies and records requests."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, endpoint, status=200, fixture=None, json_body=None, text=None, exc=None, raw=None, headers=None):
        if fixture is not None:
            text = load_fixture_raw(fixture)
        self.routes[endpoint] = (status, json_body, text, exc, raw, headers)

    def calls(self, endpoint=None):
        if endpoint is None:
            return len(self.requests)
        return sum(1 for r in self.requests if r.url.path.endswith(f"/{endpoint}"))

    def last(self):
        return self.requests[-1]

    def __call__(self, request):
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]

        if endpoint not in self.routes:
            return httpx.Response(404, json={"code": "rest_no_route", "message": "No route"})

        status, json_body, text, exc, raw, headers = self.routes[endpoint]
        if exc is not None:
            raise exc
        if raw is not None:
            # Streamed, so the body is only decoded when the client reads it
            return httpx.Response(status, headers=headers, stream=httpx.ByteStream(raw))
        if text is not None:
            return httpx.Response(status, text=text)
        return httpx.Response(status, json=json_body)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def product():
    return Product(product_id="42", file_path=FILE_PATH, version="1.0.0", name="My Plugin")


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def http(server):
    client = httpx.Client(transport=httpx.MockTransport(server))
    yield client
    client.close()


@pytest.fixture
def site():
    return SiteInfo(url="https://example.com", locale="en_US", platform_version="6.4")


@pytest.fixture
def integration(product, store, http, site, clock):
    integ = Integration(product, store, API_URL, site=site, http=http)
    integ.cache.clock = clock
    return integ


@pytest.fixture
def licensed_integration(store, http, site, clock):
    product = Product(
        product_id="42", file_path=FILE_PATH, version="1.0.0", name="My Plugin", license_enabled=True
    )
    integ = Integration(product, store, API_URL, site=site, http=http)
    integ.cache.clock = clock
    return integ
