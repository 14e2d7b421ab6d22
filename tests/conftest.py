"""Shared fixtures: sample GitHub payloads and a mock GitHub REST API."""

import json

import httpx
import pytest


def make_user(login="octo"):
    return {
        "login": login,
        "id": 1,
        "node_id": "MDQ6VXNlcjE=",
        "name": "Octo Cat",
        "bio": None,
        "avatar_url": f"https://avatars.example/{login}.png",
        "html_url": f"https://github.com/{login}",
        "public_repos": 5,
        "followers": 10,
        "following": 2,
        "created_at": "2015-01-01T00:00:00Z",
        "updated_at": "2024-01-01T00:00:00Z",
        "site_admin": False,
    }


def make_repo(index, fork=False):
    return {
        "id": index,
        "name": f"repo-{index}",
        "full_name": f"octo/repo-{index}",
        "html_url": f"https://github.com/octo/repo-{index}",
        "description": None if index % 2 else f"Repository {index}",
        "language": "Python" if index % 3 else None,
        "stargazers_count": index * 3,
        "forks_count": index,
        "fork": fork,
        "pushed_at": "2024-02-01T00:00:00Z",
        "updated_at": "2024-02-02T00:00:00Z",
        "owner": {"login": "octo"},
        "private": False,
    }


class FakeGitHubAPI:
    """
    httpx.MockTransport handler serving /users/<login> and the paginated
    /users/<login>/repos listing. Pages are 1-indexed lists of repo dicts.
    """

    def __init__(self, user=None, pages=None, fail_page=None, fail_status=500):
        self.user = user or make_user()
        self.pages = pages if pages is not None else []
        self.fail_page = fail_page
        self.fail_status = fail_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/repos"):
            page = int(request.url.params.get("page", "1"))
            if page == self.fail_page:
                return httpx.Response(self.fail_status, json={"message": "boom"})
            batch = self.pages[page - 1] if page <= len(self.pages) else []
            return httpx.Response(200, json=batch)

        if path.startswith("/users/"):
            return httpx.Response(200, json=self.user)

        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self):
        return httpx.MockTransport(self)

    def repo_requests(self):
        return [r for r in self.requests if r.url.path.endswith("/repos")]


@pytest.fixture
def fake_api():
    return FakeGitHubAPI


@pytest.fixture
def site_root(tmp_path):
    root = tmp_path / "site"
    (root / "data").mkdir(parents=True)
    (root / "assets").mkdir()
    (root / "index.html").write_text("<!doctype html><title>home</title>\n", encoding="utf-8")
    (root / "style.css").write_text("body { margin: 0; }\n", encoding="utf-8")
    (root / "assets" / "logo.bin").write_bytes(b"\x00\x01\x02")
    (root / "data" / "github-data.json").write_text(json.dumps({"repos": []}), encoding="utf-8")
    (tmp_path / "secret.txt").write_text("outside the root\n", encoding="utf-8")
    return root
