# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_relay

import json
from collections.abc import Awaitable
from typing import Annotated, Any, Literal
from urllib.parse import urlencode

from loguru import logger
from mcp.server.fastmcp import FastMCP
from pydantic import Field

from coreason_relay.client import UpstreamClient, UpstreamError, format_upstream_error, organization_headers
from coreason_relay.config import RelayConfig
from coreason_relay.drivers import command_logs_path, sandbox_path, sessions_path
from coreason_relay.models import SubscriptionKind, utc_timestamp

OrganizationId = Annotated[
    str | None,
    Field(description="Organization ID (optional, uses default from API key if not provided)"),
]
SandboxId = Annotated[str, Field(description="ID of the sandbox")]
SessionId = Annotated[str, Field(description="The ID of the session")]
CommandId = Annotated[str, Field(description="The ID of the command")]
UseSSE = Annotated[bool | None, Field(description="Whether to provide SSE URL for real-time monitoring")]


def format_response(title: str, data: Any) -> str:
    body = data if isinstance(data, str) else json.dumps(data, indent=2)
    return f"## {title}\n\n{body}"


def format_error(exc: BaseException, default_message: str) -> str:
    return f"## Error\n\n{format_upstream_error(exc, default_message)}"


def _merge(data: Any, **extra: Any) -> dict[str, Any]:
    if isinstance(data, dict):
        return {**data, **extra}
    return {"result": data, **extra}


class SandboxTools:
    """Request/response tools over the upstream sandbox API.

    Every tool returns markdown text. Upstream failures are rendered as an
    error section, never raised to the caller.
    """

    def __init__(self, client: UpstreamClient, config: RelayConfig):
        self.client = client
        self.config = config

    async def _call(self, title: str, failure: str, request: Awaitable[Any], fallback: str | None = None) -> str:
        try:
            data = await request
        except UpstreamError as e:
            logger.error(f"{failure}: {e}")
            return format_error(e, failure)
        if fallback is not None and not data:
            data = fallback
        return format_response(title, data)

    def sse_url(
        self,
        sandbox_id: str,
        event_type: str = SubscriptionKind.SANDBOX_STATUS.value,
        session_id: str | None = None,
        command_id: str | None = None,
    ) -> str:
        params = {"sandboxId": sandbox_id}
        if session_id:
            params["sessionId"] = session_id
        if command_id:
            params["commandId"] = command_id
        params["eventType"] = event_type
        return f"{self.config.public_base_url.rstrip('/')}/sse?{urlencode(params)}"

    def _monitoring(self, sandbox_id: str) -> dict[str, Any]:
        return {
            "sandboxStatus": self.sse_url(sandbox_id, SubscriptionKind.SANDBOX_STATUS.value),
            "sessions": self.sse_url(sandbox_id, SubscriptionKind.SESSIONS.value),
            "usage": {
                "description": "Use these SSE URLs for real-time monitoring",
                "sandboxStatus": f"Monitor sandbox status changes every {self.config.status_poll_interval:g} seconds",
                "sessions": f"Monitor active sessions every {self.config.sessions_poll_interval:g} seconds",
            },
        }

    # API keys

    async def list_api_keys(self, organizationId: OrganizationId = None) -> str:
        """List all API keys for the authenticated user or organization"""
        return await self._call(
            "API Keys",
            "Failed to list API keys",
            self.client.get("/api-keys", headers=organization_headers(organizationId)),
        )

    async def create_api_key(
        self,
        name: Annotated[str, Field(description="The name of the API key")],
        permissions: Annotated[
            list[str], Field(description="The list of organization resource permissions assigned to the API key")
        ],
        expiresAt: Annotated[str | None, Field(description="When the API key expires (ISO date string)")] = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """Create a new API key with specified permissions"""
        body = {"name": name, "permissions": permissions, "expiresAt": expiresAt}
        return await self._call(
            "API Key Created",
            "Failed to create API key",
            self.client.post("/api-keys", json=body, headers=organization_headers(organizationId)),
        )

    async def get_api_key(
        self,
        name: Annotated[str, Field(description="The name of the API key")],
        organizationId: OrganizationId = None,
    ) -> str:
        """Get details of a specific API key by name"""
        return await self._call(
            f"API Key: {name}",
            f"Failed to get API key {name}",
            self.client.get(f"/api-keys/{name}", headers=organization_headers(organizationId)),
        )

    async def delete_api_key(
        self,
        name: Annotated[str, Field(description="The name of the API key")],
        organizationId: OrganizationId = None,
    ) -> str:
        """Delete an API key by name"""
        try:
            await self.client.delete(f"/api-keys/{name}", headers=organization_headers(organizationId))
        except UpstreamError as e:
            return format_error(e, f"Failed to delete API key {name}")
        return format_response(f"API Key Deleted: {name}", "API key deleted successfully")

    async def get_current_api_key(self, organizationId: OrganizationId = None) -> str:
        """Get details of the current API key being used"""
        return await self._call(
            "Current API Key",
            "Failed to get current API key",
            self.client.get("/api-keys/current", headers=organization_headers(organizationId)),
        )

    # Organizations

    async def list_organizations(self) -> str:
        """List all organizations for the authenticated user"""
        return await self._call("Organizations", "Failed to list organizations", self.client.get("/organizations"))

    async def create_organization(self, name: Annotated[str, Field(description="The name of the organization")]) -> str:
        """Create a new organization"""
        return await self._call(
            "Organization Created",
            "Failed to create organization",
            self.client.post("/organizations", json={"name": name}),
        )

    async def get_organization(self, organizationId: Annotated[str, Field(description="Organization ID")]) -> str:
        """Get details of a specific organization by ID"""
        return await self._call(
            f"Organization: {organizationId}",
            f"Failed to get organization {organizationId}",
            self.client.get(f"/organizations/{organizationId}"),
        )

    async def delete_organization(self, organizationId: Annotated[str, Field(description="Organization ID")]) -> str:
        """Delete an organization by ID"""
        try:
            await self.client.delete(f"/organizations/{organizationId}")
        except UpstreamError as e:
            return format_error(e, f"Failed to delete organization {organizationId}")
        return format_response(f"Organization Deleted: {organizationId}", "Organization deleted successfully")

    async def get_organization_usage(
        self, organizationId: Annotated[str, Field(description="Organization ID")]
    ) -> str:
        """Get usage overview for an organization"""
        return await self._call(
            f"Organization Usage: {organizationId}",
            f"Failed to get usage for organization {organizationId}",
            self.client.get(f"/organizations/{organizationId}/usage"),
        )

    async def update_organization_quota(
        self,
        organizationId: Annotated[str, Field(description="Organization ID")],
        totalCpuQuota: Annotated[float | None, Field(description="Total CPU quota")] = None,
        totalMemoryQuota: Annotated[float | None, Field(description="Total memory quota")] = None,
        totalDiskQuota: Annotated[float | None, Field(description="Total disk quota")] = None,
        maxCpuPerSandbox: Annotated[float | None, Field(description="Maximum CPU per sandbox")] = None,
        maxMemoryPerSandbox: Annotated[float | None, Field(description="Maximum memory per sandbox")] = None,
        maxDiskPerSandbox: Annotated[float | None, Field(description="Maximum disk per sandbox")] = None,
        snapshotQuota: Annotated[float | None, Field(description="Snapshot quota")] = None,
        maxSnapshotSize: Annotated[float | None, Field(description="Maximum snapshot size")] = None,
        volumeQuota: Annotated[float | None, Field(description="Volume quota")] = None,
    ) -> str:
        """Update quota settings for an organization"""
        quota = {
            "totalCpuQuota": totalCpuQuota,
            "totalMemoryQuota": totalMemoryQuota,
            "totalDiskQuota": totalDiskQuota,
            "maxCpuPerSandbox": maxCpuPerSandbox,
            "maxMemoryPerSandbox": maxMemoryPerSandbox,
            "maxDiskPerSandbox": maxDiskPerSandbox,
            "snapshotQuota": snapshotQuota,
            "maxSnapshotSize": maxSnapshotSize,
            "volumeQuota": volumeQuota,
        }
        quota = {key: value for key, value in quota.items() if value is not None}
        return await self._call(
            f"Organization Quota Updated: {organizationId}",
            f"Failed to update quota for organization {organizationId}",
            self.client.patch(f"/organizations/{organizationId}/quota", json=quota),
        )

    async def list_organization_members(
        self, organizationId: Annotated[str, Field(description="Organization ID")]
    ) -> str:
        """List all members of an organization"""
        return await self._call(
            f"Organization Members: {organizationId}",
            f"Failed to list members for organization {organizationId}",
            self.client.get(f"/organizations/{organizationId}/users"),
        )

    async def update_member_role(
        self,
        organizationId: Annotated[str, Field(description="Organization ID")],
        userId: Annotated[str, Field(description="User ID")],
        role: Annotated[str, Field(description="Organization member role (owner or member)")],
    ) -> str:
        """Update role for an organization member"""
        return await self._call(
            f"Member Role Updated: {userId}",
            f"Failed to update role for member {userId}",
            self.client.post(f"/organizations/{organizationId}/users/{userId}/role", json={"role": role}),
        )

    async def delete_organization_member(
        self,
        organizationId: Annotated[str, Field(description="Organization ID")],
        userId: Annotated[str, Field(description="User ID")],
    ) -> str:
        """Remove a member from an organization"""
        try:
            await self.client.delete(f"/organizations/{organizationId}/users/{userId}")
        except UpstreamError as e:
            return format_error(e, f"Failed to remove member {userId}")
        return format_response(f"Member Removed: {userId}", "Member removed successfully")

    async def list_organization_roles(
        self, organizationId: Annotated[str, Field(description="Organization ID")]
    ) -> str:
        """List all roles in an organization"""
        return await self._call(
            f"Organization Roles: {organizationId}",
            f"Failed to list roles for organization {organizationId}",
            self.client.get(f"/organizations/{organizationId}/roles"),
        )

    async def create_organization_role(
        self,
        organizationId: Annotated[str, Field(description="Organization ID")],
        name: Annotated[str, Field(description="The name of the role")],
        description: Annotated[str, Field(description="The description of the role")],
        permissions: Annotated[list[str], Field(description="The list of permissions assigned to the role")],
    ) -> str:
        """Create a new role in an organization"""
        body = {"name": name, "description": description, "permissions": permissions}
        return await self._call(
            f"Role Created: {name}",
            f"Failed to create role {name}",
            self.client.post(f"/organizations/{organizationId}/roles", json=body),
        )

    # Sandboxes

    async def list_sandboxes(
        self,
        verbose: Annotated[bool | None, Field(description="Include verbose output")] = None,
        labels: Annotated[
            str | None,
            Field(description='JSON encoded labels to filter by, e.g. {"label1": "value1", "label2": "value2"}'),
        ] = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """List all sandboxes with optional filtering by labels"""
        return await self._call(
            "Sandboxes",
            "Failed to list sandboxes",
            self.client.get(
                "/sandbox",
                params={"verbose": bool(verbose), "labels": labels or None},
                headers=organization_headers(organizationId),
            ),
        )

    async def get_sandbox(
        self,
        sandboxId: SandboxId,
        verbose: Annotated[bool | None, Field(description="Include verbose output")] = None,
        useSSE: UseSSE = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """Get detailed information about a specific sandbox (supports real-time monitoring via SSE)"""
        failure = f"Failed to get sandbox {sandboxId}"
        try:
            data = await self.client.get(
                sandbox_path(sandboxId),
                params={"verbose": bool(verbose)},
                headers=organization_headers(organizationId),
            )
        except UpstreamError as e:
            logger.error(f"{failure}: {e}")
            return format_error(e, failure)

        result = _merge(data, sandboxId=sandboxId, timestamp=utc_timestamp())
        if useSSE:
            result["sseMonitoring"] = self._monitoring(sandboxId)
        return format_response(f"Sandbox: {sandboxId}", result)

    async def create_sandbox(
        self,
        snapshot: Annotated[
            str,
            Field(
                description="The ID or name of the snapshot used for the sandbox. Default is 'daytonaio/sandbox:0.3.0'"
            ),
        ],
        user: Annotated[str | None, Field(description="The user associated with the project")] = None,
        env: Annotated[dict[str, str] | None, Field(description="Environment variables for the sandbox")] = None,
        labels: Annotated[dict[str, str] | None, Field(description="Labels for the sandbox")] = None,
        public: Annotated[
            bool | None, Field(description="Whether the sandbox http preview is publicly accessible")
        ] = None,
        cpu: Annotated[float | None, Field(description="CPU cores allocated to the sandbox")] = None,
        gpu: Annotated[float | None, Field(description="GPU units allocated to the sandbox")] = None,
        memory: Annotated[float | None, Field(description="Memory allocated to the sandbox in GB")] = None,
        disk: Annotated[float | None, Field(description="Disk space allocated to the sandbox in GB")] = None,
        autoStopInterval: Annotated[
            float | None, Field(description="Auto-stop interval in minutes (0 means disabled)")
        ] = None,
        autoArchiveInterval: Annotated[
            float | None,
            Field(description="Auto-archive interval in minutes (0 means the maximum interval will be used)"),
        ] = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """Create a new sandbox with customizable parameters"""
        body = {
            "snapshot": snapshot,
            "user": user,
            "env": env,
            "labels": labels,
            "public": public,
            "cpu": cpu,
            "gpu": gpu,
            "memory": memory,
            "disk": disk,
            "autoStopInterval": autoStopInterval,
            "autoArchiveInterval": autoArchiveInterval,
        }
        body = {key: value for key, value in body.items() if value is not None}
        return await self._call(
            "Sandbox Created",
            "Failed to create sandbox",
            self.client.post("/sandbox", json=body, headers=organization_headers(organizationId)),
        )

    async def delete_sandbox(
        self,
        sandboxId: SandboxId,
        force: Annotated[bool, Field(description="Force deletion")],
        organizationId: OrganizationId = None,
    ) -> str:
        """Delete a sandbox (with force option)"""
        return await self._call(
            f"Sandbox {sandboxId} Deleted",
            f"Failed to delete sandbox {sandboxId}",
            self.client.delete(
                sandbox_path(sandboxId), params={"force": force}, headers=organization_headers(organizationId)
            ),
            fallback="Sandbox has been deleted",
        )

    async def start_sandbox(self, sandboxId: SandboxId, organizationId: OrganizationId = None) -> str:
        """Start a stopped sandbox"""
        return await self._call(
            f"Sandbox {sandboxId} Started",
            f"Failed to start sandbox {sandboxId}",
            self.client.post(f"{sandbox_path(sandboxId)}/start", json={}, headers=organization_headers(organizationId)),
            fallback="Sandbox has been started",
        )

    async def stop_sandbox(self, sandboxId: SandboxId, organizationId: OrganizationId = None) -> str:
        """Stop a running sandbox"""
        return await self._call(
            f"Sandbox {sandboxId} Stopped",
            f"Failed to stop sandbox {sandboxId}",
            self.client.post(f"{sandbox_path(sandboxId)}/stop", json={}, headers=organization_headers(organizationId)),
            fallback="Sandbox has been stopped",
        )

    # Snapshots

    async def list_snapshots(
        self,
        limit: Annotated[int | None, Field(description="Number of items per page")] = None,
        page: Annotated[int | None, Field(description="Page number")] = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """List all snapshots with pagination"""
        return await self._call(
            "Snapshots",
            "Failed to list snapshots",
            self.client.get(
                "/snapshots",
                params={"limit": limit or None, "page": page or None},
                headers=organization_headers(organizationId),
            ),
        )

    async def get_snapshot(
        self,
        id: Annotated[str, Field(description="ID or name of the snapshot")],
        organizationId: OrganizationId = None,
    ) -> str:
        """Get detailed information about a specific snapshot"""
        return await self._call(
            f"Snapshot: {id}",
            f"Failed to get snapshot {id}",
            self.client.get(f"/snapshots/{id}", headers=organization_headers(organizationId)),
        )

    async def create_snapshot(
        self,
        name: Annotated[str, Field(description="The name of the snapshot")],
        imageName: Annotated[str | None, Field(description="The image name of the snapshot")] = None,
        entrypoint: Annotated[list[str] | None, Field(description="The entrypoint command for the snapshot")] = None,
        general: Annotated[bool | None, Field(description="Whether the snapshot is general")] = None,
        cpu: Annotated[float | None, Field(description="CPU cores allocated to the resulting sandbox")] = None,
        gpu: Annotated[float | None, Field(description="GPU units allocated to the resulting sandbox")] = None,
        memory: Annotated[float | None, Field(description="Memory allocated to the resulting sandbox in GB")] = None,
        disk: Annotated[float | None, Field(description="Disk space allocated to the sandbox in GB")] = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """Create a new snapshot"""
        body = {
            "name": name,
            "imageName": imageName,
            "entrypoint": entrypoint,
            "general": general,
            "cpu": cpu,
            "gpu": gpu,
            "memory": memory,
            "disk": disk,
        }
        body = {key: value for key, value in body.items() if value is not None}
        return await self._call(
            "Snapshot Created",
            "Failed to create snapshot",
            self.client.post("/snapshots", json=body, headers=organization_headers(organizationId)),
        )

    async def delete_snapshot(
        self,
        id: Annotated[str, Field(description="ID of the snapshot")],
        organizationId: OrganizationId = None,
    ) -> str:
        """Delete a snapshot"""
        return await self._call(
            f"Snapshot {id} Deleted",
            f"Failed to delete snapshot {id}",
            self.client.delete(f"/snapshots/{id}", headers=organization_headers(organizationId)),
            fallback="Snapshot has been deleted",
        )

    # Volumes

    async def list_volumes(
        self,
        includeDeleted: Annotated[bool | None, Field(description="Include deleted volumes in the response")] = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """List all volumes"""
        return await self._call(
            "Volumes",
            "Failed to list volumes",
            self.client.get(
                "/volumes",
                params={"includeDeleted": includeDeleted},
                headers=organization_headers(organizationId),
            ),
        )

    async def get_volume(
        self,
        volumeId: Annotated[str, Field(description="ID of the volume")],
        organizationId: OrganizationId = None,
    ) -> str:
        """Get detailed information about a specific volume"""
        return await self._call(
            f"Volume: {volumeId}",
            f"Failed to get volume {volumeId}",
            self.client.get(f"/volumes/{volumeId}", headers=organization_headers(organizationId)),
        )

    async def get_volume_by_name(
        self,
        name: Annotated[str, Field(description="Name of the volume")],
        organizationId: OrganizationId = None,
    ) -> str:
        """Get detailed information about a specific volume by name"""
        return await self._call(
            f"Volume: {name}",
            f"Failed to get volume {name}",
            self.client.get(f"/volumes/by-name/{name}", headers=organization_headers(organizationId)),
        )

    async def create_volume(
        self,
        name: Annotated[str, Field(description="The name of the volume")],
        organizationId: OrganizationId = None,
    ) -> str:
        """Create a new volume"""
        return await self._call(
            "Volume Created",
            "Failed to create volume",
            self.client.post("/volumes", json={"name": name}, headers=organization_headers(organizationId)),
        )

    async def delete_volume(
        self,
        volumeId: Annotated[str, Field(description="ID of the volume")],
        organizationId: OrganizationId = None,
    ) -> str:
        """Delete a volume"""
        return await self._call(
            f"Volume {volumeId} Deleted",
            f"Failed to delete volume {volumeId}",
            self.client.delete(f"/volumes/{volumeId}", headers=organization_headers(organizationId)),
            fallback="Volume has been marked for deletion",
        )

    # Process execution and sessions

    async def execute_command(
        self,
        sandboxId: SandboxId,
        command: Annotated[str, Field(description="The command to execute")],
        cwd: Annotated[str | None, Field(description="Current working directory")] = None,
        timeout: Annotated[int | None, Field(description="Timeout in seconds, defaults to 10 seconds")] = None,
        useSSE: UseSSE = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """Execute a command in a sandbox (supports real-time monitoring via SSE)"""
        failure = f"Failed to execute command in sandbox {sandboxId}"
        body: dict[str, Any] = {"command": command}
        if cwd is not None:
            body["cwd"] = cwd
        if timeout is not None:
            body["timeout"] = timeout
        try:
            data = await self.client.post(
                f"/toolbox/{sandboxId}/toolbox/process/execute",
                json=body,
                headers=organization_headers(organizationId),
            )
        except UpstreamError as e:
            logger.error(f"{failure}: {e}")
            return format_error(e, failure)

        result = _merge(data, command=command, sandboxId=sandboxId, timestamp=utc_timestamp())
        if useSSE:
            result["sseMonitoring"] = self._monitoring(sandboxId)
        return format_response(f"Command Executed in Sandbox {sandboxId}", result)

    async def list_sessions(
        self,
        sandboxId: SandboxId,
        useSSE: UseSSE = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """List all active sessions in a sandbox (supports real-time monitoring via SSE)"""
        failure = f"Failed to list sessions for sandbox {sandboxId}"
        try:
            data = await self.client.get(sessions_path(sandboxId), headers=organization_headers(organizationId))
        except UpstreamError as e:
            logger.error(f"{failure}: {e}")
            return format_error(e, failure)

        result = {"sessions": data} if isinstance(data, list) else _merge(data)
        result.update(sandboxId=sandboxId, timestamp=utc_timestamp())
        if useSSE:
            result["sseMonitoring"] = self._monitoring(sandboxId)
        return format_response(f"Sessions in Sandbox {sandboxId}", result)

    async def create_session(
        self,
        sandboxId: SandboxId,
        sessionId: SessionId,
        organizationId: OrganizationId = None,
    ) -> str:
        """Create a new session in a sandbox"""
        return await self._call(
            f"Session Created in Sandbox {sandboxId}",
            f"Failed to create session in sandbox {sandboxId}",
            self.client.post(
                sessions_path(sandboxId),
                json={"sessionId": sessionId},
                headers=organization_headers(organizationId),
            ),
            fallback=f"Session {sessionId} created successfully",
        )

    async def get_session(
        self,
        sandboxId: SandboxId,
        sessionId: SessionId,
        organizationId: OrganizationId = None,
    ) -> str:
        """Get details about a specific session"""
        return await self._call(
            f"Session {sessionId} in Sandbox {sandboxId}",
            f"Failed to get session {sessionId} in sandbox {sandboxId}",
            self.client.get(f"{sessions_path(sandboxId)}/{sessionId}", headers=organization_headers(organizationId)),
        )

    async def delete_session(
        self,
        sandboxId: SandboxId,
        sessionId: SessionId,
        organizationId: OrganizationId = None,
    ) -> str:
        """Delete a specific session"""
        return await self._call(
            f"Session {sessionId} Deleted from Sandbox {sandboxId}",
            f"Failed to delete session {sessionId} in sandbox {sandboxId}",
            self.client.delete(f"{sessions_path(sandboxId)}/{sessionId}", headers=organization_headers(organizationId)),
            fallback="Session deleted successfully",
        )

    async def execute_session_command(
        self,
        sandboxId: SandboxId,
        sessionId: SessionId,
        command: Annotated[str, Field(description="The command to execute")],
        runAsync: Annotated[bool | None, Field(description="Whether to execute the command asynchronously")] = None,
        useSSE: UseSSE = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """Execute a command in a specific session (supports real-time monitoring via SSE)"""
        failure = f"Failed to execute command in session {sessionId} in sandbox {sandboxId}"
        body = {"command": command}
        if runAsync is not None:
            body["runAsync"] = runAsync
        try:
            data = await self.client.post(
                f"{sessions_path(sandboxId)}/{sessionId}/exec",
                json=body,
                headers=organization_headers(organizationId),
            )
        except UpstreamError as e:
            logger.error(f"{failure}: {e}")
            return format_error(e, failure)

        result = _merge(data, command=command, sessionId=sessionId, sandboxId=sandboxId, timestamp=utc_timestamp())
        if useSSE:
            result["sseMonitoring"] = self._monitoring(sandboxId)
            command_id = result.get("cmdId")
            if command_id:
                result["sseMonitoring"]["logs"] = self.sse_url(
                    sandboxId, SubscriptionKind.LOGS.value, sessionId, command_id
                )
        return format_response(f"Command Executed in Session {sessionId}", result)

    async def get_session_command(
        self,
        sandboxId: SandboxId,
        sessionId: SessionId,
        commandId: CommandId,
        organizationId: OrganizationId = None,
    ) -> str:
        """Get details about a specific command"""
        return await self._call(
            f"Command {commandId} in Session {sessionId}",
            f"Failed to get command {commandId} in session {sessionId} in sandbox {sandboxId}",
            self.client.get(
                f"{sessions_path(sandboxId)}/{sessionId}/command/{commandId}",
                headers=organization_headers(organizationId),
            ),
        )

    async def get_session_command_logs(
        self,
        sandboxId: SandboxId,
        sessionId: SessionId,
        commandId: CommandId,
        follow: Annotated[bool | None, Field(description="Whether to follow the logs stream")] = None,
        useSSE: Annotated[
            bool | None, Field(description="Whether to use SSE for real-time streaming (recommended for live logs)")
        ] = None,
        organizationId: OrganizationId = None,
    ) -> str:
        """Get logs for a specific command in a session (supports real-time streaming via SSE)"""
        if useSSE:
            url = self.sse_url(sandboxId, SubscriptionKind.LOGS.value, sessionId, commandId)
            return format_response(
                f"Real-time Logs for Command {commandId}",
                {
                    "message": "Use SSE for real-time log streaming",
                    "sseUrl": url,
                    "usage": {
                        "description": "Connect to the SSE URL for live log streaming",
                        "example": f"const eventSource = new EventSource('{url}');",
                        "events": ["log", "log-complete", "log-error"],
                    },
                    "alternative": "Set useSSE=false to get static logs",
                },
            )

        failure = f"Failed to get logs for command {commandId} in session {sessionId} in sandbox {sandboxId}"
        try:
            data = await self.client.get(
                command_logs_path(sandboxId, sessionId, commandId),
                params={"follow": follow},
                headers=organization_headers(organizationId),
            )
        except UpstreamError as e:
            logger.error(f"{failure}: {e}")
            return format_error(e, failure)

        result = {"logs": data} if isinstance(data, str) else _merge(data)
        result["sseNote"] = "Set useSSE=true for real-time streaming"
        return format_response(f"Logs for Command {commandId} in Session {sessionId}", result)

    # Server-sent events

    async def get_sse_connection_url(
        self,
        sandboxId: SandboxId,
        sessionId: Annotated[
            str | None, Field(description="The ID of the session (optional, required for logs streaming)")
        ] = None,
        commandId: Annotated[
            str | None, Field(description="The ID of the command (optional, required for logs streaming)")
        ] = None,
        eventType: Annotated[
            Literal["logs", "sandbox-status", "sessions"] | None,
            Field(
                description="Type of events to stream: 'logs' (requires sessionId and commandId), "
                "'sandbox-status', or 'sessions'"
            ),
        ] = None,
    ) -> str:
        """Get the SSE connection URL for real-time streaming of sandbox events"""
        event_type = eventType or SubscriptionKind.SANDBOX_STATUS.value
        url = self.sse_url(sandboxId, event_type, sessionId, commandId)
        return format_response(
            "SSE Connection URL",
            {
                "url": url,
                "sandboxId": sandboxId,
                "sessionId": sessionId,
                "commandId": commandId,
                "eventType": event_type,
                "usage": {
                    "description": "Connect to this URL using EventSource for real-time streaming",
                    "example": f"const eventSource = new EventSource('{url}');",
                    "events": {
                        "logs": "Stream command execution logs (requires sessionId and commandId)",
                        "sandbox-status": (
                            f"Stream sandbox status updates every {self.config.status_poll_interval:g} seconds"
                        ),
                        "sessions": (
                            f"Stream active sessions updates every {self.config.sessions_poll_interval:g} seconds"
                        ),
                    },
                },
            },
        )


TOOL_NAMES = {
    "list_api_keys": "listApiKeys",
    "create_api_key": "createApiKey",
    "get_api_key": "getApiKey",
    "delete_api_key": "deleteApiKey",
    "get_current_api_key": "getCurrentApiKey",
    "list_organizations": "listOrganizations",
    "create_organization": "createOrganization",
    "get_organization": "getOrganization",
    "delete_organization": "deleteOrganization",
    "get_organization_usage": "getOrganizationUsage",
    "update_organization_quota": "updateOrganizationQuota",
    "list_organization_members": "listOrganizationMembers",
    "update_member_role": "updateMemberRole",
    "delete_organization_member": "deleteOrganizationMember",
    "list_organization_roles": "listOrganizationRoles",
    "create_organization_role": "createOrganizationRole",
    "list_sandboxes": "listSandboxes",
    "get_sandbox": "getSandbox",
    "create_sandbox": "createSandbox",
    "delete_sandbox": "deleteSandbox",
    "start_sandbox": "startSandbox",
    "stop_sandbox": "stopSandbox",
    "list_snapshots": "listSnapshots",
    "get_snapshot": "getSnapshot",
    "create_snapshot": "createSnapshot",
    "delete_snapshot": "deleteSnapshot",
    "list_volumes": "listVolumes",
    "get_volume": "getVolume",
    "get_volume_by_name": "getVolumeByName",
    "create_volume": "createVolume",
    "delete_volume": "deleteVolume",
    "execute_command": "executeCommand",
    "list_sessions": "listSessions",
    "create_session": "createSession",
    "get_session": "getSession",
    "delete_session": "deleteSession",
    "execute_session_command": "executeSessionCommand",
    "get_session_command": "getSessionCommand",
    "get_session_command_logs": "getSessionCommandLogs",
    "get_sse_connection_url": "getSSEConnectionUrl",
}


def build_mcp(tools: SandboxTools, name: str = "coreason-relay") -> FastMCP:
    """Register every SandboxTools method as an MCP tool under its wire name."""
    mcp = FastMCP(name)
    for attr, tool_name in TOOL_NAMES.items():
        mcp.add_tool(getattr(tools, attr), name=tool_name)
    return mcp
