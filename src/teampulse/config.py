"""Configuration parsing and validation for teampulse."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import AuthenticationError, ConfigurationError
from .models import TeamMember
from .thresholds import DEFAULT_THRESHOLDS, ThresholdConfig, resolve_thresholds

DEFAULT_DB_PATH = Path("~/.teampulse/history.db")


@dataclass(frozen=True)
class Config:
    """Validated runtime settings: credentials and the history location."""

    github_token: str
    db_path: Path
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None

    @property
    def has_jira_credentials(self) -> bool:
        return bool(self.jira_email and self.jira_api_token)


@dataclass(frozen=True)
class TeamConfig:
    """A team's members, sources and resolved thresholds."""

    team_name: str
    repos: Tuple[str, ...]
    members: Tuple[TeamMember, ...] = ()
    jira_host: Optional[str] = None
    jira_projects: Tuple[str, ...] = ()
    thresholds: ThresholdConfig = field(default=DEFAULT_THRESHOLDS)


def _env(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def load_config(db_path: Optional[Path] = None) -> Config:
    """Build and validate runtime configuration from the environment.

    Args:
        db_path: Explicit history database path; overrides ``TEAMPULSE_DB``.

    Returns:
        A validated ``Config`` instance.

    Raises:
        AuthenticationError: If ``GITHUB_TOKEN`` is not configured.
    """
    github_token = _env("GITHUB_TOKEN")
    if not github_token:
        raise AuthenticationError(
            "Missing required GitHub token. "
            "Set the 'GITHUB_TOKEN' environment variable before running teampulse."
        )

    env_db_path = _env("TEAMPULSE_DB")
    resolved_db_path = db_path or (Path(env_db_path) if env_db_path else DEFAULT_DB_PATH)

    return Config(
        github_token=github_token,
        db_path=resolved_db_path.expanduser(),
        jira_email=_env("JIRA_EMAIL"),
        jira_api_token=_env("JIRA_API_TOKEN"),
    )


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Invalid team configuration: '{key}' must be an object.")
    return value


def _string_list(section: Dict[str, Any], key: str, label: str) -> List[str]:
    value = section.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(f"Invalid team configuration: '{label}' must be a list of strings.")
    return [item.strip() for item in value if item.strip()]


def _parse_member(raw: Any) -> TeamMember:
    if isinstance(raw, str) and raw.strip():
        return TeamMember(github=raw.strip())
    if isinstance(raw, dict) and isinstance(raw.get("github"), str) and raw["github"].strip():
        jira = raw.get("jira")
        if jira is not None and not isinstance(jira, str):
            raise ConfigurationError(f"Invalid team member entry: 'jira' must be a string in {raw!r}")
        return TeamMember(github=raw["github"].strip(), jira=jira.strip() if jira else None)
    raise ConfigurationError(f"Invalid team member entry: {raw!r}")


def load_team_config(path: Path) -> TeamConfig:
    """Load a team file.

    Expected shape::

        {
          "teamName": "platform",
          "members": [{"github": "octocat", "jira": "Mona Lisa"}],
          "github": {"repos": ["org/service"]},
          "jira": {"host": "acme.atlassian.net", "projects": ["PLAT"]},
          "settings": {"thresholds": {"trendAlertPercent": 60}}
        }

    Raises:
        ConfigurationError: If the file is missing, is not valid JSON, lacks
            a team name or at least one repository, or has a section, member
            or threshold of the wrong type.
    """
    try:
        data: Dict[str, Any] = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Team configuration file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Team configuration file is not valid JSON: {path}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Team configuration must be a JSON object: {path}")

    team_name = str(data.get("teamName") or "").strip()
    if not team_name:
        raise ConfigurationError("Invalid team configuration: 'teamName' is required.")

    github = _section(data, "github")
    repos = tuple(_string_list(github, "repos", "github.repos"))
    if not repos:
        raise ConfigurationError("Invalid team configuration: 'github.repos' must list at least one repository.")

    jira = _section(data, "jira")
    jira_host = jira.get("host")
    if jira_host is not None and not isinstance(jira_host, str):
        raise ConfigurationError("Invalid team configuration: 'jira.host' must be a string.")

    members = data.get("members") or []
    if not isinstance(members, list):
        raise ConfigurationError("Invalid team configuration: 'members' must be a list.")

    settings = _section(data, "settings")
    overrides = _section(settings, "thresholds")
    for key, value in overrides.items():
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise ConfigurationError(f"Invalid team configuration: threshold '{key}' must be a number.")

    return TeamConfig(
        team_name=team_name,
        repos=repos,
        members=tuple(_parse_member(member) for member in members),
        jira_host=(jira_host or "").strip() or None,
        jira_projects=tuple(_string_list(jira, "projects", "jira.projects")),
        thresholds=resolve_thresholds(overrides),
    )
