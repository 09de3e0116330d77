import pytest
import respx

from issuebridge.backend import BackendClient
from issuebridge.github import GitHubClient
from issuebridge.workflow import IngestionWorkflow

BACKEND_URL = "http://backend.test"


@pytest.fixture
def repo_json() -> dict:
    """A trimmed ``GET /repos/alice/tool`` response."""
    return {
        "id": 123456789,
        "name": "tool",
        "full_name": "alice/tool",
        "owner": {
            "login": "alice",
            "avatar_url": "https://avatars.githubusercontent.com/u/1?v=4",
        },
        "html_url": "https://github.com/alice/tool",
        "description": "A small tool",
        "private": False,
        "fork": False,
        "homepage": "https://tool.dev",
        "language": "Python",
        "stargazers_count": 42,
        "watchers_count": 42,
        "forks_count": 3,
        "topics": ["cli", "github"],
        "created_at": "2023-01-02T03:04:05Z",
        "updated_at": "2024-05-06T07:08:09Z",
    }


@pytest.fixture
def issues_json() -> list[dict]:
    return [
        {"id": 1001, "number": 7, "title": "Crash on start", "body": "Traceback...", "state": "open"},
        {
            "id": 1002,
            "number": 6,
            "title": "Add docs",
            "body": None,
            "state": "open",
            "pull_request": {"url": "https://api.github.com/repos/alice/tool/pulls/6"},
        },
        {"id": 1003, "number": 5, "title": "Support Windows", "body": None, "state": "open"},
    ]


@pytest.fixture
def router():
    with respx.mock(assert_all_called=False) as mock:
        yield mock


@pytest.fixture
async def github():
    client = GitHubClient("gh-token")
    yield client
    await client.close()


@pytest.fixture
async def backend():
    client = BackendClient(BACKEND_URL, "backend-token")
    yield client
    await client.close()


@pytest.fixture
def workflow(github, backend) -> IngestionWorkflow:
    return IngestionWorkflow(github, backend, "alice")
