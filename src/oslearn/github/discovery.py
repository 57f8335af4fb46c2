"""Repository and issue discovery for the curriculum's early stages.

Stage 1 shows popular repositories matching the learner's interest and
stage 2 shows open "good first issue" tickets matched to interest and skill
level. Both lookups degrade to a bundled curated list when GitHub cannot be
reached or rejects the token, so the curriculum keeps working offline.

Rendering these summaries is the UI's job; this module only produces data.
"""

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from oslearn.github.client import GitHubClient


logger = logging.getLogger(__name__)


DEFAULT_INTEREST = "exploring"
DEFAULT_SKILL_LEVEL = "total-beginner"

# Interest tag -> search keywords for repositories
REPOSITORY_TOPICS: Dict[str, str] = {
    "game-development": "game OR gamedev OR godot OR unity",
    "web-development": "web OR javascript OR react OR vue",
    "data-science": "data-science OR machine-learning OR python",
    "mobile-apps": "mobile OR android OR ios OR react-native",
    "devops": "devops OR kubernetes OR docker OR ci-cd",
    "exploring": "beginner OR first-timers-only OR good-first-issue",
}

# Interest tag -> search keywords for issues
ISSUE_TOPICS: Dict[str, str] = {
    "game-development": "game OR gamedev OR unity OR godot",
    "web-development": "javascript OR typescript OR react OR vue OR web",
    "data-science": "python OR data OR ml OR ai",
    "mobile-apps": "android OR ios OR mobile OR react-native",
    "devops": "docker OR kubernetes OR devops OR ci-cd",
    "exploring": "beginner OR starter",
}

# Skill level tag -> issue labels worth searching
SKILL_LABELS: Dict[str, List[str]] = {
    "total-beginner": ["good-first-issue", "beginner", "documentation"],
    "some-experience": ["good-first-issue"],
    "experienced": ["good-first-issue", "help-wanted"],
}


class RepositorySummary(BaseModel):
    """A repository suggestion."""

    name: str
    full_name: str
    description: str = "No description available"
    stars: int = Field(default=0, ge=0)
    url: str
    language: str = "Multiple"


class IssueSummary(BaseModel):
    """A beginner-friendly issue suggestion."""

    title: str
    repository: str
    url: str
    labels: List[str] = Field(default_factory=list)
    created_at: Optional[str] = None


def _repo(full_name: str, description: str, stars: int, language: str) -> RepositorySummary:
    return RepositorySummary(
        name=full_name.split("/")[-1],
        full_name=full_name,
        description=description,
        stars=stars,
        url=f"https://github.com/{full_name}",
        language=language,
    )


FALLBACK_REPOSITORIES: Dict[str, List[RepositorySummary]] = {
    "game-development": [
        _repo("godotengine/godot", "Free and open source 2D and 3D game engine", 75000, "C++"),
        _repo("bevyengine/bevy", "A refreshingly simple data-driven game engine built in Rust", 28000, "Rust"),
        _repo("photonstorm/phaser", "Desktop and Mobile HTML5 game framework", 35000, "JavaScript"),
    ],
    "web-development": [
        _repo("facebook/react", "A JavaScript library for building user interfaces", 220000, "JavaScript"),
        _repo("vuejs/vue", "Progressive JavaScript Framework", 205000, "JavaScript"),
        _repo("tailwindlabs/tailwindcss", "A utility-first CSS framework", 75000, "CSS"),
    ],
    "data-science": [
        _repo("tensorflow/tensorflow", "An Open Source Machine Learning Framework", 180000, "Python"),
        _repo("scikit-learn/scikit-learn", "Machine learning in Python", 57000, "Python"),
        _repo("pandas-dev/pandas", "Flexible and powerful data analysis tool", 40000, "Python"),
    ],
    "mobile-apps": [
        _repo("facebook/react-native", "A framework for building native apps with React", 115000, "JavaScript"),
        _repo("flutter/flutter", "Google's mobile UI framework", 160000, "Dart"),
        _repo("ionic-team/ionic-framework", "A powerful cross-platform UI toolkit", 50000, "TypeScript"),
    ],
    "devops": [
        _repo("kubernetes/kubernetes", "Container orchestration system", 105000, "Go"),
        _repo("moby/moby", "Open source containerization platform", 67000, "Go"),
        _repo("ansible/ansible", "IT automation platform", 60000, "Python"),
    ],
    "exploring": [
        _repo("firstcontributions/first-contributions", "Help beginners make their first contribution", 40000, "Multiple"),
        _repo("MunGell/awesome-for-beginners", "List of projects with good first issues", 60000, "Multiple"),
        _repo("public-apis/public-apis", "A collective list of free APIs", 280000, "Python"),
    ],
}

FALLBACK_ISSUES: List[IssueSummary] = [
    IssueSummary(
        title="Update documentation for installation steps",
        repository="example/awesome-project",
        url="https://github.com/example/awesome-project/issues/123",
        labels=["good first issue", "documentation"],
    ),
    IssueSummary(
        title="Fix typo in README",
        repository="example/cool-library",
        url="https://github.com/example/cool-library/issues/456",
        labels=["good first issue"],
    ),
    IssueSummary(
        title="Add example for beginners",
        repository="example/learning-resource",
        url="https://github.com/example/learning-resource/issues/789",
        labels=["good first issue", "help wanted"],
    ),
]


def build_repository_query(interest: str) -> str:
    """Build the repository search query for an interest tag."""
    topic = REPOSITORY_TOPICS.get(interest, "good-first-issue")
    return f"{topic} good-first-issues:>5"


def build_issue_query(interest: str, skill_level: str) -> str:
    """Build the issue search query for an interest and skill level."""
    labels = SKILL_LABELS.get(skill_level, ["good-first-issue"])
    topic = ISSUE_TOPICS.get(interest, "beginner")
    label_query = " ".join(f"label:{label}" for label in labels)
    return f"{label_query} state:open ({topic})"


async def find_repositories(
    client: GitHubClient,
    interest: str,
    limit: int = 5,
) -> List[RepositorySummary]:
    """Return repositories matching the learner's interest.

    Falls back to the curated list for the interest (or the "exploring"
    list) when the search does not succeed.
    """
    outcome = await client.search_repositories(
        build_repository_query(interest),
        per_page=limit,
    )
    if not outcome.ok:
        logger.warning(
            "Repository search failed, using fallback list",
            extra={"interest": interest, "outcome": outcome.kind.value},
        )
        return list(FALLBACK_REPOSITORIES.get(interest, FALLBACK_REPOSITORIES[DEFAULT_INTEREST]))

    return [
        RepositorySummary(
            name=item["name"],
            full_name=item["full_name"],
            description=item.get("description") or "No description available",
            stars=item.get("stargazers_count") or 0,
            url=item["html_url"],
            language=item.get("language") or "Multiple",
        )
        for item in outcome.value or []
    ]


async def find_good_first_issues(
    client: GitHubClient,
    interest: str,
    skill_level: str,
    limit: int = 5,
) -> List[IssueSummary]:
    """Return open beginner-friendly issues for the learner.

    Falls back to a small curated sample when the search does not succeed.
    """
    outcome = await client.search_issues(
        build_issue_query(interest, skill_level),
        per_page=limit,
    )
    if not outcome.ok:
        logger.warning(
            "Issue search failed, using fallback list",
            extra={
                "interest": interest,
                "skill_level": skill_level,
                "outcome": outcome.kind.value,
            },
        )
        return list(FALLBACK_ISSUES)

    issues = []
    for item in outcome.value or []:
        # repository_url ends with /repos/{owner}/{repo}
        repository = "/".join(item["repository_url"].split("/")[-2:])
        issues.append(
            IssueSummary(
                title=item["title"],
                repository=repository,
                url=item["html_url"],
                labels=[label["name"] for label in item.get("labels", [])],
                created_at=(item.get("created_at") or "")[:10] or None,
            )
        )
    return issues
