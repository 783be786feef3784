import json
from pathlib import Path
from typing import Any, Protocol, runtime_checkable
from typing_extensions import override

from anyio import Path as AsyncPath

from repo_insight_mcp.settings import get_settings_path


@runtime_checkable
class KeyValueBackend(Protocol):
    """An opaque key/value store. `set` stages a value, `save` persists everything staged."""

    async def get(self, key: str) -> Any | None: ...  # pyright: ignore[reportAny]

    async def set(self, key: str, value: Any) -> None: ...  # pyright: ignore[reportAny]

    async def has(self, key: str) -> bool: ...

    async def save(self) -> None: ...


class InMemoryBackend(KeyValueBackend):
    def __init__(self, values: dict[str, Any] | None = None):
        self.values: dict[str, Any] = dict(values or {})
        self.save_count: int = 0

    @override
    async def get(self, key: str) -> Any | None:  # pyright: ignore[reportAny]
        return self.values.get(key)

    @override
    async def set(self, key: str, value: Any) -> None:  # pyright: ignore[reportAny]
        self.values[key] = value

    @override
    async def has(self, key: str) -> bool:
        return key in self.values

    @override
    async def save(self) -> None:
        self.save_count += 1


class JsonFileBackend(KeyValueBackend):
    """A JSON settings file. The file is read on first access; a missing file is an empty store."""

    def __init__(self, path: Path):
        self.path: AsyncPath = AsyncPath(path)
        self._values: dict[str, Any] | None = None

    async def _load(self) -> dict[str, Any]:
        if self._values is None:
            if await self.path.exists():
                values = json.loads(await self.path.read_text(encoding="utf-8"))
                if not isinstance(values, dict):
                    msg = f"Expected a JSON object in {self.path}, got {type(values).__name__}"
                    raise TypeError(msg)
                self._values = values
            else:
                self._values = {}

        return self._values

    @override
    async def get(self, key: str) -> Any | None:  # pyright: ignore[reportAny]
        return (await self._load()).get(key)

    @override
    async def set(self, key: str, value: Any) -> None:  # pyright: ignore[reportAny]
        (await self._load())[key] = value

    @override
    async def has(self, key: str) -> bool:
        return key in await self._load()

    @override
    async def save(self) -> None:
        values = await self._load()

        await self.path.parent.mkdir(parents=True, exist_ok=True)
        _ = await self.path.write_text(json.dumps(values, indent=2), encoding="utf-8")


def get_settings_backend(path: Path | None = None) -> KeyValueBackend:
    return JsonFileBackend(path=path or get_settings_path())
