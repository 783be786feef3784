from pydantic import BaseModel, ConfigDict, Field


def normalize_cache_component(component: str) -> str:
    return "".join(character for character in component.lower() if character.isalnum())


def cache_key(author: str, name: str) -> str:
    """The cache key of a repository. Case and non-alphanumeric characters do not distinguish keys.

    Returns an empty string when neither component has an alphanumeric character, such repositories are not cached.
    """

    normalized_author = normalize_cache_component(author)
    normalized_name = normalize_cache_component(name)

    if not normalized_author and not normalized_name:
        return ""

    return f"{normalized_author}_{normalized_name}"


class RepositoryIdentity(BaseModel):
    """A repository to summarize."""

    model_config = ConfigDict(frozen=True)

    author: str = Field(description="The owner of the repository.")
    name: str = Field(description="The name of the repository.")
    description: str = Field(default="", description="The description of the repository.")
    language: str = Field(default="", description="The primary language of the repository.")
    url: str = Field(description="The URL of the repository.")
    stars: str | None = Field(default=None, description="The star count, for display only.")
    forks: str | None = Field(default=None, description="The fork count, for display only.")

    @property
    def full_name(self) -> str:
        return f"{self.author}/{self.name}"

    @property
    def cache_key(self) -> str:
        return cache_key(author=self.author, name=self.name)
