import json
from unittest import IsolatedAsyncioTestCase, TestCase

import httpx

from fakes import utc
from syncmyworkbin.api import Api, FileEntry, FolderEntry, parse_time
from syncmyworkbin.errors import ApiError, AuthenticationError

BASE = "https://portal.example/api/"


class ParseTimeTest(TestCase):
	def test_zulu(self):
		self.assertEqual(parse_time("2024-01-02T03:04:05Z"), utc(2024, 1, 2, 3, 4, 5))

	def test_offset(self):
		self.assertEqual(parse_time("2024-01-02T11:04:05+08:00"), utc(2024, 1, 2, 3, 4, 5))

	def test_naive_is_utc(self):
		self.assertEqual(parse_time("2024-01-02T03:04:05"), utc(2024, 1, 2, 3, 4, 5))

	def test_invalid(self):
		with self.assertRaises(ApiError):
			parse_time("yesterday")


class ApiTest(IsolatedAsyncioTestCase):
	def setUp(self) -> None:
		super().setUp()
		self.routes = {}
		self.seen = []

	def handler(self, request: httpx.Request) -> httpx.Response:
		self.seen.append(request)
		key = (request.url.path, request.url.query.decode())
		if key not in self.routes:
			return httpx.Response(404)
		status, body = self.routes[key]
		if isinstance(body, bytes):
			return httpx.Response(status, content=body)
		return httpx.Response(status, content=json.dumps(body).encode())

	async def asyncSetUp(self) -> None:
		self.api = Api("secret", BASE, transport=httpx.MockTransport(self.handler))

	async def asyncTearDown(self) -> None:
		await self.api.aclose()

	async def test_child_folders(self):
		self.routes[("/api/files/", "ParentID=root")] = (
			200,
			{"data": [{"id": "lab", "name": "Lab", "allowUpload": True}, {"id": "x", "name": "X"}]},
		)

		folders = await self.api.list_child_folders("root")

		self.assertEqual(folders, [FolderEntry("lab", "Lab", True), FolderEntry("x", "X", False)])
		self.assertEqual(self.seen[0].headers["Authorization"], "Bearer secret")

	async def test_files_with_creator(self):
		self.routes[("/api/files/sub/file", "populate=Creator")] = (
			200,
			{
				"data": [
					{
						"id": "f",
						"name": "hw.pdf",
						"lastUpdatedDate": "2024-01-02T00:00:00Z",
						"creatorName": "Alice",
					}
				]
			},
		)

		files = await self.api.list_files("sub", include_creator=True)

		self.assertEqual(files, [FileEntry("f", "hw.pdf", utc(2024, 1, 2), "Alice")])

	async def test_empty_data_is_empty_list(self):
		self.routes[("/api/files/root/file", "")] = (200, {"data": None})
		self.assertEqual(await self.api.list_files("root"), [])

	async def test_download_url(self):
		self.routes[("/api/files/file/f/downloadurl", "")] = (200, {"data": "https://cdn.example/f"})
		self.assertEqual(await self.api.get_download_url("f"), "https://cdn.example/f")

	async def test_download_url_type_mismatch(self):
		self.routes[("/api/files/file/f/downloadurl", "")] = (200, {"data": ["nope"]})
		with self.assertRaises(ApiError):
			await self.api.get_download_url("f")

	async def test_unauthorized(self):
		self.routes[("/api/module", "")] = (401, {})
		with self.assertRaises(AuthenticationError):
			await self.api.list_modules()

	async def test_server_error(self):
		self.routes[("/api/module", "term=2010")] = (500, {})
		with self.assertRaises(ApiError):
			await self.api.list_modules("2010")

	async def test_invalid_json(self):
		self.routes[("/api/module", "")] = (200, b"<html>")
		with self.assertRaises(ApiError):
			await self.api.list_modules()

	async def test_stream(self):
		self.routes[("/f", "")] = (200, b"x" * 3000)

		received = b""
		async with self.api.stream("https://cdn.example/f") as chunks:
			async for chunk in chunks:
				received += chunk

		self.assertEqual(received, b"x" * 3000)

	async def test_stream_status(self):
		with self.assertRaises(httpx.HTTPStatusError):
			async with self.api.stream("https://cdn.example/missing"):
				pass
