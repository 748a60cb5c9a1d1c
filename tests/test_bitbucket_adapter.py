"""Tests for BitbucketRestAdapter against a faked Bitbucket Cloud API."""

import asyncio
import base64
import unittest

import httpx

from scm_diff.domain.entities import (
    AuthMode,
    CommitRef,
    DownloadType,
    HostDescriptor,
    PullRef,
    ScmProvider,
)
from scm_diff.domain.exceptions import (
    ConfigurationError,
    MalformedUpstreamResponseError,
    UpstreamHttpError,
)
from scm_diff.infrastructure.bitbucket_rest_adapter import BitbucketRestAdapter

from fakes import FakeApi

API = "https://api.bitbucket.org/2.0"
REPO = f"{API}/repositories/ws/repo"
EXTENSIONS = frozenset({"pkg", "tcf"})


def _change(status, new=None, old=None, added=3, removed=1):
    return {
        "status": status,
        "lines_added": added,
        "lines_removed": removed,
        "new": {"path": new} if new else None,
        "old": {"path": old} if old else None,
    }


class BitbucketAdapterTestCase(unittest.TestCase):

    def setUp(self):
        self.api = FakeApi()

    def _adapter(self, host="bitbucket.org", auth_mode=None):
        return BitbucketRestAdapter(
            HostDescriptor(ScmProvider.BITBUCKET, host, auth_mode), self.api.client(), EXTENSIONS
        )


class TestConfiguration(BitbucketAdapterTestCase):

    def test_api_url(self):
        self.assertEqual(self._adapter().get_api_url(), API)
        self.assertEqual(self._adapter("https://Bitbucket.org/ws/repo/").get_api_url(), API)

    def test_api_url_rejects_other_hosts(self):
        with self.assertRaises(ConfigurationError):
            self._adapter("bb.custom").get_api_url()

    def test_basic_header_encodes_email_and_token(self):
        header = self._adapter().create_headers("me@example.com:secret")["Authorization"]
        self.assertTrue(header.startswith("Basic "))
        self.assertEqual(base64.b64decode(header[6:]).decode(), "me@example.com:secret")

    def test_bearer_header(self):
        adapter = self._adapter("bitbucket.org/ws", AuthMode.BEARER)
        self.assertEqual(adapter.create_headers("tok"), {"Authorization": "Bearer tok"})

    def test_auth_mode_can_be_switched(self):
        adapter = self._adapter("bitbucket.org/ws")
        self.assertEqual(adapter.auth_mode, AuthMode.BASIC)
        adapter.set_auth_mode(AuthMode.BEARER)
        self.assertEqual(adapter.create_headers("tok"), {"Authorization": "Bearer tok"})


class TestConnection(BitbucketAdapterTestCase):

    def test_basic_accepts_200_and_403(self):
        for status in (200, 403):
            api = FakeApi()
            api.add(f"{API}/user", json={}, status=status)
            adapter = BitbucketRestAdapter(
                HostDescriptor(ScmProvider.BITBUCKET, "bitbucket.org"), api.client(), EXTENSIONS
            )
            self.assertTrue(asyncio.run(adapter.test("me@example.com:secret")), status)

    def test_basic_rejects_401(self):
        self.api.add(f"{API}/user", json={}, status=401)
        self.assertFalse(asyncio.run(self._adapter().test("me:bad")))

    def test_basic_rejects_scoped_host_without_request(self):
        self.assertFalse(asyncio.run(self._adapter("bitbucket.org/ws").test("me:secret")))
        self.assertEqual(self.api.requests, [])

    def test_bearer_requires_workspace(self):
        self.assertFalse(asyncio.run(self._adapter("bitbucket.org", AuthMode.BEARER).test("tok")))
        self.assertEqual(self.api.requests, [])

    def test_bearer_probes_workspace(self):
        self.api.add(f"{API}/repositories/ws", json={})
        self.assertTrue(asyncio.run(self._adapter("bitbucket.org/ws", AuthMode.BEARER).test("tok")))
        self.assertEqual(self.api.urls(), [f"{API}/repositories/ws"])

    def test_bearer_probes_repository(self):
        self.api.add(f"{REPO}", json={})
        self.assertTrue(asyncio.run(self._adapter("bitbucket.org/ws/repo", AuthMode.BEARER).test("tok")))
        self.assertEqual(self.api.urls(), [REPO])

    def test_bearer_rejects_403(self):
        self.api.add(f"{REPO}", json={}, status=403)
        self.assertFalse(asyncio.run(self._adapter("bitbucket.org/ws/repo", AuthMode.BEARER).test("tok")))

    def test_network_error_is_false(self):
        self.api.fail(f"{API}/user", httpx.ConnectError("offline"))
        self.assertFalse(asyncio.run(self._adapter().test("me:secret")))

    def test_foreign_host_is_false(self):
        self.assertFalse(asyncio.run(self._adapter("bb.custom").test("me:secret")))


class TestCommits(BitbucketAdapterTestCase):

    def test_maps_diffstat(self):
        self.api.add(f"{REPO}/commit/abc", json={"hash": "abc", "parents": [{"hash": "p1"}]})
        self.api.add(
            f"{REPO}/diffstat/abc",
            json={
                "values": [
                    _change("modified", new="dir/a.pkg", old="dir/a.pkg"),
                    _change("added", new="b.tcf"),
                    _change("removed", old="dir/c.pkg"),
                    _change("renamed", new="d.pkg", old="old/d.pkg"),
                    _change("modified", new="e.txt", old="e.txt"),
                ]
            },
        )
        files = asyncio.run(self._adapter().handle_commit(CommitRef("ws", "repo", "abc"), "me:secret"))

        self.assertEqual([f.filename for f in files], ["dir/a.pkg", "b.tcf", "dir/c.pkg", "d.pkg"])
        first = files[0]
        self.assertEqual((first.additions, first.deletions), (3, 1))
        self.assertEqual(first.sha_old, "p1")
        self.assertEqual(first.sha_new, "abc")
        self.assertEqual(first.download.type, DownloadType.RAW)
        self.assertEqual(first.download.old, f"{REPO}/src/p1/dir%2Fa.pkg")
        self.assertEqual(first.download.new, f"{REPO}/src/abc/dir%2Fa.pkg")
        self.assertTrue(files[1].new)
        self.assertTrue(files[2].deleted)
        self.assertEqual(files[2].filename_old, "dir/c.pkg")
        self.assertTrue(files[3].renamed)
        self.assertEqual(files[3].filename_old, "old/d.pkg")

    def test_commit_without_parents(self):
        self.api.add(f"{REPO}/commit/root", json={"hash": "root"})
        self.api.add(f"{REPO}/diffstat/root", json={"values": [_change("added", new="a.pkg")]})
        files = asyncio.run(self._adapter().handle_commit(CommitRef("ws", "repo", "root"), "me:secret"))
        self.assertEqual(files[0].sha_old, "root")

    def test_follows_next_links(self):
        self.api.add(f"{REPO}/commit/abc", json={"parents": [{"hash": "p1"}]})
        self.api.add(
            f"{REPO}/diffstat/abc",
            json={"values": [_change("modified", new="1.pkg")], "next": f"{REPO}/diffstat/abc?page=2"},
        )
        self.api.add(
            f"{REPO}/diffstat/abc",
            json={"values": [_change("modified", new="2.pkg")], "next": f"{REPO}/diffstat/abc?page=3"},
            params={"page": 2},
        )
        self.api.add(
            f"{REPO}/diffstat/abc",
            json={"values": [_change("modified", new="3.pkg")]},
            params={"page": 3},
        )
        files = asyncio.run(self._adapter().handle_commit(CommitRef("ws", "repo", "abc"), "me:secret"))
        self.assertEqual([f.filename for f in files], ["1.pkg", "2.pkg", "3.pkg"])

    def test_failed_next_page_aborts(self):
        self.api.add(f"{REPO}/commit/abc", json={"parents": []})
        self.api.add(
            f"{REPO}/diffstat/abc",
            json={"values": [], "next": f"{REPO}/diffstat/abc?page=2"},
        )
        self.api.add(f"{REPO}/diffstat/abc", json={}, status=403, params={"page": 2})
        with self.assertRaises(UpstreamHttpError) as ctx:
            asyncio.run(self._adapter().handle_commit(CommitRef("ws", "repo", "abc"), "me:secret"))
        self.assertIn("paginated data (page 2)", str(ctx.exception))
        self.assertIn("privilege scopes", str(ctx.exception))

    def test_page_without_values_is_malformed(self):
        self.api.add(f"{REPO}/commit/abc", json={"parents": []})
        self.api.add(f"{REPO}/diffstat/abc", json={"type": "error"})
        with self.assertRaises(MalformedUpstreamResponseError):
            asyncio.run(self._adapter().handle_commit(CommitRef("ws", "repo", "abc"), "me:secret"))


class TestPullRequests(BitbucketAdapterTestCase):

    def test_maps_source_and_destination(self):
        self.api.add(
            f"{REPO}/pullrequests/5",
            json={"source": {"commit": {"hash": "head1"}}, "destination": {"commit": {"hash": "base1"}}},
        )
        self.api.add(f"{REPO}/pullrequests/5/diffstat", json={"values": [_change("modified", new="x.pkg")]})
        files = asyncio.run(self._adapter().handle_pull_request(PullRef("ws", "repo", "5"), "me:secret"))
        self.assertEqual(files[0].sha_old, "base1")
        self.assertEqual(files[0].sha_new, "head1")
        self.assertEqual(files[0].download.new, f"{REPO}/src/head1/x.pkg")

    def test_missing_source_commit_is_malformed(self):
        self.api.add(f"{REPO}/pullrequests/5", json={"destination": {}})
        with self.assertRaises(MalformedUpstreamResponseError):
            asyncio.run(self._adapter().handle_pull_request(PullRef("ws", "repo", "5"), "me:secret"))

    def test_pull_request_error(self):
        self.api.add(f"{REPO}/pullrequests/5", json={}, status=401)
        with self.assertRaises(UpstreamHttpError) as ctx:
            asyncio.run(self._adapter().handle_pull_request(PullRef("ws", "repo", "5"), "me:secret"))
        self.assertIn("pull request details", str(ctx.exception))
        self.assertIn("Unauthorized", str(ctx.exception))


class TestSrcUrls(BitbucketAdapterTestCase):

    def test_reserved_characters_are_encoded_in_path(self):
        self.api.add(f"{REPO}/commit/abc", json={"hash": "abc", "parents": [{"hash": "p1"}]})
        self.api.add(
            f"{REPO}/diffstat/abc",
            json={"values": [_change("modified", new="docs/a#1 b%.pkg", old="docs/a#1 b%.pkg")]},
        )
        [file] = asyncio.run(self._adapter().handle_commit(CommitRef("ws", "repo", "abc"), "me:secret"))

        self.assertEqual(file.download.new, f"{REPO}/src/abc/docs%2Fa%231%20b%25.pkg")
        self.assertEqual(httpx.URL(file.download.new).fragment, "")
