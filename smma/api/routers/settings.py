"""LLM provider settings endpoints.

Routes
------
GET    /settings                   All stored settings (API keys masked)
PUT    /settings                   Save key/value pairs (empty value deletes)
DELETE /settings/{key}             Remove one setting
GET    /settings/providers         Provider catalogue
GET    /settings/active-provider   Active provider id
PUT    /settings/active-provider   Switch the active provider
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from smma.config import settings
from smma.db.settings_store import delete_setting, get_all_settings, get_setting, set_setting
from smma.llm.providers import ACTIVE_PROVIDER_KEY, PROVIDERS, mask_settings

router = APIRouter()


class ActiveProviderUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider_id: str = Field(alias="providerId")


@router.get("")
def read_all(request: Request) -> dict[str, str]:
    return mask_settings(get_all_settings(request.app.state.db))


@router.put("")
def save(updates: dict[str, Optional[Any]], request: Request) -> dict[str, str]:
    """Store each pair; ``null`` or empty-string values delete the key."""
    conn = request.app.state.db
    for key, value in updates.items():
        if value is None or value == "":
            delete_setting(conn, key)
        else:
            set_setting(conn, key, str(value))
    return mask_settings(get_all_settings(conn))


@router.get("/providers")
def providers() -> list[dict[str, Any]]:
    return [
        {
            "id": p.id,
            "name": p.name,
            "defaultBaseUrl": p.base_url,
            "defaultModel": p.model,
            "requiresKey": p.requires_key,
        }
        for p in PROVIDERS.values()
    ]


@router.get("/active-provider")
def active_provider(request: Request) -> dict[str, str]:
    active = get_setting(request.app.state.db, ACTIVE_PROVIDER_KEY) or settings.llm_provider
    return {"activeProvider": active}


@router.put("/active-provider")
def set_active_provider(body: ActiveProviderUpdate, request: Request) -> dict[str, str]:
    if body.provider_id not in PROVIDERS:
        raise HTTPException(status_code=400, detail=f"Unknown provider: {body.provider_id}")
    set_setting(request.app.state.db, ACTIVE_PROVIDER_KEY, body.provider_id)
    return {"activeProvider": body.provider_id}


@router.delete("/{key}")
def remove(key: str, request: Request) -> dict[str, str]:
    delete_setting(request.app.state.db, key)
    return {"deleted": key}
