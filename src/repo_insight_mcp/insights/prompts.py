import yaml

from repo_insight_mcp.insights.models import RepositoryIdentity

SUMMARIZE_SYSTEM_PROMPT = """
You are a senior software architect and developer advocate. You are skilled at summarizing technical projects
clearly and concisely for engineers deciding whether a project is worth their time.
"""

OUTPUT_FORMAT = """
# Output Format
Summarize the repository in Markdown and cover the following:
1. The core technical architecture.
2. The core problem the project solves.
3. Who the project is for and how to get started, in three sentences or fewer.
"""

REPOSITORY_METADATA_FIELDS = {"author", "name", "description", "language", "url"}


def dump_metadata_as_yaml(identity: RepositoryIdentity) -> str:
    return yaml.safe_dump(identity.model_dump(include=REPOSITORY_METADATA_FIELDS), sort_keys=False, indent=1, width=400)


def readme_section(readme: str, complete: bool) -> str:
    return f"""
## Readme ({"complete" if complete else "excerpt"})
---
{readme}
---
"""


def directory_listing_section(listing: str) -> str:
    return f"""
## Repository Layout (partial)
The following are the entries in the root of the repository:
---
{listing}
---
"""


def manifest_section(path: str, content: str) -> str:
    return f"""
## Manifest `{path}` (excerpt)
---
{content}
---
"""


def build_user_prompt(identity: RepositoryIdentity, context_sections: list[str]) -> str:
    return f"""# Repository Information
Provide an in-depth yet approachable summary of the GitHub repository {identity.full_name}.

## Metadata
{dump_metadata_as_yaml(identity)}{"".join(context_sections)}
{OUTPUT_FORMAT}"""
