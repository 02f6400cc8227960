import json
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from leadbot.logging_config import get_logger
from leadbot.schemas.tenant import TenantConfig

logger = get_logger("tenant_registry")

DEFAULT_TENANT = TenantConfig(
    id="default",
    system_prompt="Eres un asistente útil. Responde breve y en español.",
    model="gpt-4o-mini",
    temperature=0.4,
)


class TenantConfigError(Exception):
    def __init__(self, message: str, routing_key: Optional[str] = None):
        self.routing_key = routing_key
        super().__init__(message if routing_key is None else f"{routing_key}: {message}")


class TenantRegistry:
    """Routing key (WhatsApp phone_number_id) -> tenant configuration. Read-only after load."""

    def __init__(self, tenants: Mapping[str, TenantConfig], default: TenantConfig = DEFAULT_TENANT):
        self._tenants = dict(tenants)
        self._default = default

    def __len__(self) -> int:
        return len(self._tenants)

    def __contains__(self, routing_key: object) -> bool:
        return routing_key in self._tenants

    def get_client_config(self, routing_key: Optional[str]) -> TenantConfig:
        if routing_key is None:
            return self._default
        return self._tenants.get(str(routing_key), self._default)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "TenantRegistry":
        if not isinstance(raw, Mapping):
            raise TenantConfigError("tenant file must contain a mapping of routing key -> config")

        tenants: dict[str, TenantConfig] = {}
        for routing_key, config in raw.items():
            if not isinstance(config, Mapping):
                raise TenantConfigError("config must be a mapping", str(routing_key))
            try:
                tenants[str(routing_key)] = TenantConfig.model_validate(config)
            except ValidationError as exc:
                raise TenantConfigError(str(exc), str(routing_key)) from exc
        return cls(tenants)

    @classmethod
    def from_file(cls, path: str | Path) -> "TenantRegistry":
        path = Path(path)
        if not path.exists():
            logger.warning(
                "Tenant file not found, every routing key resolves to the default tenant",
                extra={"context": {"path": str(path)}},
            )
            return cls({})

        with path.open("r", encoding="utf-8") as handle:
            try:
                if path.suffix.lower() == ".json":
                    raw = json.load(handle)
                else:
                    raw = yaml.safe_load(handle) or {}
            except (json.JSONDecodeError, yaml.YAMLError) as exc:
                raise TenantConfigError(f"cannot parse {path}: {exc}") from exc

        registry = cls.from_mapping(raw)
        logger.info("Tenants loaded", extra={"context": {"path": str(path), "count": len(registry)}})
        return registry
