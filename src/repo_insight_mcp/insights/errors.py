from repo_insight_mcp.llm.errors import ConfigurationError


class CredentialRequiredError(ConfigurationError):
    """Neither a model configuration id nor an API key was provided."""

    def __init__(self):
        super().__init__(detail="An API key or a model configuration id is required.")


class ConfigurationNotFoundError(ConfigurationError):
    """No stored model configuration has the requested id."""

    def __init__(self, configuration_id: str):
        super().__init__(detail="The model configuration could not be found.", extra_info={"configuration": configuration_id})
