"""Tests for commit and pull/merge request page detection per provider."""

import unittest

import httpx

from scm_diff.domain.entities import CommitRef, HostDescriptor, PullRef, ScmProvider
from scm_diff.domain.value_objects import parse_page_url
from scm_diff.infrastructure.bitbucket_rest_adapter import BitbucketRestAdapter
from scm_diff.infrastructure.github_rest_adapter import GitHubRestAdapter
from scm_diff.infrastructure.gitlab_rest_adapter import GitLabRestAdapter

EXTENSIONS = frozenset({"pkg"})

GITHUB_REPO = "https://github.com/foo/bar"
GITLAB_REPO = "https://gitlab.com/foo/bar"
BITBUCKET_REPO = "https://bitbucket.org/foo/bar"

GITHUB_PR_VARIANTS = ["", "commits", "commits/123abc", "checks", "files", "unexisting_subpage"]
GITLAB_MR_VARIANTS = ["", "commits", "commits/123abc", "pipelines", "diffs", "unexisting_subpage"]
BITBUCKET_PR_VARIANTS = ["", "overview", "commits", "diff", "diff#chg-file.ext", "unexisting_subpage"]


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))


class TestGitHubDetection(unittest.TestCase):

    def setUp(self):
        self.adapter = GitHubRestAdapter(
            HostDescriptor(ScmProvider.GITHUB, "github.com"), _client(), EXTENSIONS
        )

    def test_recognizes_commit_urls(self):
        url = parse_page_url(f"{GITHUB_REPO}/commit/123abc")
        self.assertEqual(self.adapter.test_commit(url), CommitRef("foo", "bar", "123abc"))
        self.assertIsNone(self.adapter.test_pull_request(url))

    def test_commit_detection_is_case_insensitive(self):
        url = parse_page_url(f"{GITHUB_REPO}/Commit/ABC123")
        self.assertEqual(self.adapter.test_commit(url), CommitRef("foo", "bar", "ABC123"))

    def test_rejects_invalid_commit_urls(self):
        for raw in [f"{GITHUB_REPO}/commit", f"{GITHUB_REPO}/commits", f"{GITHUB_REPO}/commit/"]:
            url = parse_page_url(raw)
            self.assertIsNone(self.adapter.test_commit(url), raw)
            self.assertIsNone(self.adapter.test_pull_request(url), raw)

    def test_rejects_trailing_garbage_after_commit(self):
        url = parse_page_url(f"{GITHUB_REPO}/commit/123abc/extra")
        self.assertIsNone(self.adapter.test_commit(url))

    def test_recognizes_pull_request_subpages(self):
        for suffix in GITHUB_PR_VARIANTS:
            url = parse_page_url(f"{GITHUB_REPO}/pull/1/{suffix}")
            self.assertEqual(self.adapter.test_pull_request(url), PullRef("foo", "bar", "1"), suffix)
            self.assertIsNone(self.adapter.test_commit(url), suffix)

    def test_rejects_invalid_pull_request_urls(self):
        url = parse_page_url(f"{GITHUB_REPO}/pull")
        self.assertIsNone(self.adapter.test_commit(url))
        self.assertIsNone(self.adapter.test_pull_request(url))


class TestGitLabDetection(unittest.TestCase):

    def setUp(self):
        self.adapter = GitLabRestAdapter(
            HostDescriptor(ScmProvider.GITLAB, "gitlab.com"), _client(), EXTENSIONS
        )

    def test_recognizes_commit_urls(self):
        url = parse_page_url(f"{GITLAB_REPO}/-/commit/123abc")
        self.assertEqual(self.adapter.test_commit(url), CommitRef("foo", "bar", "123abc"))
        self.assertIsNone(self.adapter.test_pull_request(url))

    def test_nested_groups_stay_in_owner(self):
        url = parse_page_url("https://gitlab.com/group/sub/project/-/commit/abc")
        self.assertEqual(self.adapter.test_commit(url), CommitRef("group/sub", "project", "abc"))

    def test_rejects_invalid_commit_urls(self):
        for raw in [f"{GITLAB_REPO}/-/commit", f"{GITLAB_REPO}/-/commits", f"{GITLAB_REPO}/-/commit/"]:
            url = parse_page_url(raw)
            self.assertIsNone(self.adapter.test_commit(url), raw)
            self.assertIsNone(self.adapter.test_pull_request(url), raw)

    def test_recognizes_merge_request_subpages(self):
        for suffix in GITLAB_MR_VARIANTS:
            url = parse_page_url(f"{GITLAB_REPO}/-/merge_requests/1/{suffix}")
            self.assertEqual(self.adapter.test_pull_request(url), PullRef("foo", "bar", "1"), suffix)
            self.assertIsNone(self.adapter.test_commit(url), suffix)

    def test_rejects_invalid_merge_request_urls(self):
        url = parse_page_url(f"{GITLAB_REPO}/-/merge_requests")
        self.assertIsNone(self.adapter.test_commit(url))
        self.assertIsNone(self.adapter.test_pull_request(url))


class TestBitbucketDetection(unittest.TestCase):

    def setUp(self):
        self.adapter = BitbucketRestAdapter(
            HostDescriptor(ScmProvider.BITBUCKET, "bitbucket.org"), _client(), EXTENSIONS
        )

    def test_recognizes_commit_urls(self):
        url = parse_page_url(f"{BITBUCKET_REPO}/commits/123abc")
        self.assertEqual(self.adapter.test_commit(url), CommitRef("foo", "bar", "123abc"))
        self.assertIsNone(self.adapter.test_pull_request(url))

    def test_rejects_invalid_commit_urls(self):
        for raw in [f"{BITBUCKET_REPO}/commit", f"{BITBUCKET_REPO}/commits", f"{BITBUCKET_REPO}/commit/"]:
            url = parse_page_url(raw)
            self.assertIsNone(self.adapter.test_commit(url), raw)
            self.assertIsNone(self.adapter.test_pull_request(url), raw)

    def test_recognizes_pull_request_subpages(self):
        for suffix in BITBUCKET_PR_VARIANTS:
            url = parse_page_url(f"{BITBUCKET_REPO}/pull-requests/1/{suffix}")
            self.assertEqual(self.adapter.test_pull_request(url), PullRef("foo", "bar", "1"), suffix)
            self.assertIsNone(self.adapter.test_commit(url), suffix)

    def test_accepts_singular_pull_request_path(self):
        url = parse_page_url(f"{BITBUCKET_REPO}/Pull-Request/7")
        self.assertEqual(self.adapter.test_pull_request(url), PullRef("foo", "bar", "7"))

    def test_rejects_invalid_pull_request_urls(self):
        url = parse_page_url(f"{BITBUCKET_REPO}/pull-requests")
        self.assertIsNone(self.adapter.test_commit(url))
        self.assertIsNone(self.adapter.test_pull_request(url))
