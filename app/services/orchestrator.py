"""Airflow notifier that triggers DAG runs for stored webhook files."""
import base64
import logging
from dataclasses import dataclass
from typing import Dict, Optional
import httpx

from app.config import Settings
from app.utils.exceptions import NotifyError
from app.utils.timestamps import format_js_iso, utc_now

logger = logging.getLogger(__name__)

AUTH_BASIC = "basic"
AUTH_BEARER = "bearer"


@dataclass(frozen=True)
class OrchestratorRoute:
    """Where and how to trigger a DAG run for one routing key."""

    auth_scheme: str
    base_url: str
    dag_id: str

    @property
    def trigger_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/dags/{self.dag_id}/dagRuns"


class OrchestratorNotifier:
    """
    Triggers Airflow DAG runs.

    Routing keys (product names) map to a route; anything unmapped uses the
    default route. Bearer routes fetch a token from `auth_url` first. Errors
    raise NotifyError and are never retried here.
    """

    def __init__(
        self,
        default_route: OrchestratorRoute,
        routes: Dict[str, OrchestratorRoute],
        username: str,
        password: str,
        auth_url: str,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.default_route = default_route
        self.routes = routes
        self.username = username
        self.password = password
        self.auth_url = auth_url
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "OrchestratorNotifier":
        """Build the notifier from the AIRFLOW_* settings."""
        middle_route = OrchestratorRoute(
            auth_scheme=AUTH_BEARER,
            base_url=settings.AIRFLOW_MIDDLE_URL,
            dag_id=settings.AIRFLOW_MIDDLE_DAG_ID,
        )
        return cls(
            default_route=OrchestratorRoute(
                auth_scheme=AUTH_BASIC,
                base_url=settings.AIRFLOW_URL,
                dag_id=settings.AIRFLOW_DAG_ID,
            ),
            routes={product: middle_route for product in settings.AIRFLOW_MIDDLE_PRODUCTS},
            username=settings.AIRFLOW_USER,
            password=settings.AIRFLOW_PASSWORD,
            auth_url=settings.AIRFLOW_AUTH_URL,
            timeout=settings.ORCHESTRATOR_TIMEOUT,
        )

    def route_for(self, routing_hint: str) -> OrchestratorRoute:
        return self.routes.get(routing_hint, self.default_route)

    async def trigger(self, run_payload: dict, routing_hint: str) -> str:
        """Trigger a DAG run with `run_payload` as its conf. Returns the run id."""
        route = self.route_for(routing_hint)
        now = utc_now()
        dag_run_id = f"external-api_webhook-{format_js_iso(now)}"
        body = {"conf": run_payload, "dag_run_id": dag_run_id}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            if route.auth_scheme == AUTH_BEARER:
                token = await self._fetch_token(client)
                authorization = f"Bearer {token}"
                body["logical_date"] = format_js_iso(now)
            else:
                authorization = f"Basic {self._basic_credentials()}"

            try:
                response = await client.post(
                    route.trigger_url,
                    json=body,
                    headers={
                        "Authorization": authorization,
                        "Content-Type": "application/json",
                    },
                )
            except httpx.RequestError as e:
                raise NotifyError(f"Failed to reach Airflow at {route.trigger_url}: {e}") from e

        if not response.is_success:
            raise NotifyError(
                f"Failed to trigger Airflow DAG {route.dag_id}: {response.text}",
                response_body=response.text,
            )

        logger.info(f"Triggered Airflow DAG {route.dag_id} with run {dag_run_id}")
        return dag_run_id

    def _basic_credentials(self) -> str:
        raw = f"{self.username}:{self.password}".encode("utf-8")
        return base64.b64encode(raw).decode("ascii")

    async def _fetch_token(self, client: httpx.AsyncClient) -> str:
        """Authenticate against the middle layer and return the access token."""
        try:
            response = await client.post(
                self.auth_url,
                json={"username": self.username, "password": self.password},
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as e:
            raise NotifyError(f"Failed to reach Airflow auth endpoint: {e}") from e

        if not response.is_success:
            raise NotifyError(
                f"Failed to authenticate with Airflow: {response.text}",
                response_body=response.text,
            )

        try:
            token = response.json().get("access_token")
        except ValueError:
            token = None
        if not token:
            raise NotifyError("Airflow auth response has no access_token", response_body=response.text)
        return token
