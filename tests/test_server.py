"""Tests for conntest.server -- the REST endpoints."""

import json
import os
import tempfile
import unittest

from aiohttp.test_utils import AioHTTPTestCase

from conntest import __version__
from conntest.constants import DEFAULT_THRESHOLD_MAP
from conntest.server import create_app


class TestServerEndpoints(AioHTTPTestCase):
    async def get_application(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        with open(os.path.join(self.tmpdir.name, "servers.json"), "w") as fh:
            json.dump({"Home": {"url": "https://home.example/", "country": "nl"}}, fh)
        return create_app(self.tmpdir.name)

    async def test_version(self):
        resp = await self.client.get("/api/ext/conntest/")
        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.json(), __version__)

    async def test_time_echoes_timestamp(self):
        resp = await self.client.get("/api/ext/conntest/time", params={"timestamp": "1234"})
        self.assertEqual(resp.status, 200)
        self.assertEqual(resp.headers["Access-Control-Allow-Origin"], "*")
        data = await resp.json()
        self.assertEqual(data["clientTimestamp"], 1234)
        self.assertIsInstance(data["serverTimestamp"], int)

    async def test_time_without_timestamp(self):
        resp = await self.client.get("/api/ext/conntest/time")
        data = await resp.json()
        self.assertIn("serverTimestamp", data)
        self.assertNotIn("clientTimestamp", data)

    async def test_time_with_bad_timestamp(self):
        resp = await self.client.get("/api/ext/conntest/time", params={"timestamp": "soon"})
        self.assertNotIn("clientTimestamp", await resp.json())

    async def test_servers(self):
        resp = await self.client.get("/api/ext/conntest/servers")
        self.assertEqual(
            await resp.json(),
            {"Home": {"url": "https://home.example/", "country": "NL"}},
        )

    async def test_thresholds_default(self):
        resp = await self.client.get("/api/ext/conntest/thresholds")
        self.assertEqual(await resp.json(), DEFAULT_THRESHOLD_MAP)


if __name__ == "__main__":
    unittest.main()
