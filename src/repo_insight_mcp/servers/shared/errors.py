ExtraInfoType = dict[str, str | None]


class ServerError(Exception):
    """A request error from the Repo Insight server."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if details := [f"{key}: {value}" for key, value in (extra_info or {}).items() if value is not None]:
            msg += " (" + ", ".join(details) + ")"
        super().__init__(msg)


class InsightGenerationError(ServerError):
    """The provider failed while generating an insight."""

    def __init__(self, repository: str, kind: str, message: str):
        super().__init__(message="The insight could not be generated.", extra_info={"repository": repository, "kind": kind, "error": message})


class InsightGenerationEmptyError(ServerError):
    """The provider finished without producing any text."""

    def __init__(self, repository: str):
        super().__init__(message="The provider returned an empty insight.", extra_info={"repository": repository})
