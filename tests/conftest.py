import os
import sys
from collections import defaultdict

import pytest
from playwright.async_api import Error as PlaywrightError

# Make the helper modules next to this file importable from every test package
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))


class FakeCDPSession:
    """In-memory stand-in for a Playwright CDPSession.

    Records sent commands, keeps registered listeners and lets a test emit
    protocol notifications synchronously, the way Playwright dispatches them.
    """

    def __init__(self, fail_on=None):
        self.sent = []
        self.handlers = defaultdict(list)
        self.detached = False
        self.fail_on = set(fail_on or [])

    async def send(self, method, params=None):
        self.sent.append(method)
        if method in self.fail_on:
            raise PlaywrightError(f"{method} failed")
        return {}

    def on(self, event, handler):
        self.handlers[event].append(handler)

    def remove_listener(self, event, handler):
        self.handlers[event].remove(handler)

    async def detach(self):
        if "detach" in self.fail_on:
            raise PlaywrightError("Target page, context or browser has been closed")
        self.detached = True

    def emit(self, event, params):
        for handler in list(self.handlers[event]):
            handler(params)

    @property
    def listener_count(self):
        return sum(len(h) for h in self.handlers.values())


@pytest.fixture
def cdp_session():
    return FakeCDPSession()
