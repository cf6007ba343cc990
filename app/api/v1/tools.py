"""Tool endpoints: listing, delegates, delegate API keys, test execution"""

from fastapi import APIRouter, status

from app.core.config import config, logger
from app.core.dependencies import ContainerDep, CurrentUserId, DBSession
from app.core.errors import ApiKeyNotFoundError
from app.schemas.api_keys import (
    ApiKeyCreate,
    ApiKeyCreatedResponse,
    ApiKeyListResponse,
    ApiKeyResponse,
    ApiKeyRevokeResponse,
)
from app.schemas.delegates import DelegateInfo, DelegateListResponse
from app.schemas.tools import (
    ExecutionPolicy,
    ToolCall,
    ToolListResponse,
    ToolTestRequest,
    ToolTestResponse,
)

router = APIRouter()


@router.get("", response_model=ToolListResponse)
async def list_tools(user_id: CurrentUserId, container: ContainerDep):
    """Local tools plus the tools declared by the user's connected delegates"""
    return ToolListResponse(tools=container.registry.list_for_user(user_id))


@router.get("/delegates", response_model=DelegateListResponse)
async def list_delegates(user_id: CurrentUserId, container: ContainerDep):
    """Connected delegates of the current user"""
    delegates = [
        DelegateInfo(
            delegate_id=d.delegate_id,
            user_id=d.user_id,
            tools=d.tool_names,
            connected_at=d.connected_at,
            capabilities=d.capabilities,
        )
        for d in container.delegate_manager.list_for_user(user_id)
    ]
    return DelegateListResponse(delegates=delegates)


@router.get("/api-keys", response_model=ApiKeyListResponse)
async def list_api_keys(user_id: CurrentUserId, db: DBSession, container: ContainerDep):
    """API keys of the current user; secrets are never returned"""
    keys = await container.api_key_service.list_keys(db, user_id)
    return ApiKeyListResponse(keys=[ApiKeyResponse.model_validate(k) for k in keys])


@router.post(
    "/api-keys",
    response_model=ApiKeyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_api_key(
    body: ApiKeyCreate,
    user_id: CurrentUserId,
    db: DBSession,
    container: ContainerDep,
):
    """
    Create a delegate API key.

    The raw secret is in the response and cannot be retrieved again.
    """
    record, raw_key = await container.api_key_service.create_key(
        db,
        user_id=user_id,
        name=body.name,
        expires_at=body.expires_at,
    )
    return ApiKeyCreatedResponse(key=ApiKeyResponse.model_validate(record), secret_key=raw_key)


@router.delete("/api-keys/{key_id}", response_model=ApiKeyRevokeResponse)
async def revoke_api_key(
    key_id: str,
    user_id: CurrentUserId,
    db: DBSession,
    container: ContainerDep,
):
    """Revoke an API key; revoking twice succeeds"""
    revoked = await container.api_key_service.revoke_key(db, user_id, key_id)
    if not revoked:
        raise ApiKeyNotFoundError(key_id)
    return ApiKeyRevokeResponse()


@router.post("/test", response_model=ToolTestResponse)
async def test_tool(body: ToolTestRequest, user_id: CurrentUserId, container: ContainerDep):
    """
    Run a tool with empty input.

    Execution errors are reported in the body (success: false), never as an
    HTTP error. Content is cut to the configured maximum length.
    """
    call = ToolCall(name=body.tool_name, input={})
    policy = ExecutionPolicy(
        tools_enabled=True,
        enabled_tools=None,
        tool_timeout=config.test_tool_timeout,
    )
    try:
        result = await container.dispatcher.execute_tool(call, user_id, policy)
    except Exception as e:
        logger.error(f"Tool test failed for {body.tool_name}: {e}", exc_info=True)
        return ToolTestResponse(success=False, content=str(e) or "Unknown error")

    return ToolTestResponse(
        success=not result.is_error,
        content=result.content_as_text()[: config.test_tool_max_content],
    )
