"""
Mock Airflow + Sintegre Server

Simulates the two external systems the webhook service talks to:

- a Sintegre file endpoint that serves report files with a
  Content-Disposition header
- the Airflow REST API (basic-auth endpoint, and the "middle" endpoint that
  requires a bearer token from /auth/token)

It logs all received DAG run triggers for debugging and testing purposes.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse, Response

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Mock Airflow and Sintegre",
    description="Simulates Airflow DAG triggers and Sintegre file downloads",
    version="1.0.0"
)

MOCK_TOKEN = "mock-access-token"

# In-memory storage for received DAG runs (for demo purposes)
received_dag_runs: List[Dict[str, Any]] = []

# Names of files that fail the next N downloads, for exercising retries
failing_files: Dict[str, int] = {}


def _store_dag_run(dag_id: str, payload: dict, auth: str) -> dict:
    run = {
        "dag_id": dag_id,
        "auth": auth,
        "received_at": datetime.now(timezone.utc).isoformat(),
        **payload,
    }
    received_dag_runs.append(run)

    # Keep only last 100 runs in memory
    if len(received_dag_runs) > 100:
        received_dag_runs.pop(0)

    conf = payload.get("conf", {})
    logger.info(f"Received DAG run for {dag_id} ({auth}) webhook {conf.get('webhookId')}")
    logger.info(f"Conf: {json.dumps(conf, indent=2, ensure_ascii=False)}")
    return run


@app.post("/auth/token")
async def issue_token(request: Request):
    """Issue a bearer token for the middle endpoint."""
    credentials = await request.json()
    if not credentials.get("username") or not credentials.get("password"):
        return JSONResponse(status_code=401, content={"detail": "Missing credentials"})
    return {"access_token": MOCK_TOKEN, "token_type": "bearer"}


@app.post("/api/v1/dags/{dag_id}/dagRuns")
async def trigger_basic(dag_id: str, request: Request, authorization: Optional[str] = Header(None)):
    """Airflow endpoint using basic authentication."""
    if not authorization or not authorization.startswith("Basic "):
        return JSONResponse(status_code=401, content={"detail": "Basic auth required"})
    payload = await request.json()
    run = _store_dag_run(dag_id, payload, "basic")
    return {"dag_run_id": run.get("dag_run_id"), "state": "queued"}


@app.post("/middle/api/v1/dags/{dag_id}/dagRuns")
async def trigger_middle(dag_id: str, request: Request, authorization: Optional[str] = Header(None)):
    """Airflow middle endpoint using bearer authentication."""
    if authorization != f"Bearer {MOCK_TOKEN}":
        return JSONResponse(status_code=401, content={"detail": "Invalid token"})
    payload = await request.json()
    run = _store_dag_run(dag_id, payload, "bearer")
    return {"dag_run_id": run.get("dag_run_id"), "state": "queued"}


@app.get("/files/{file_name}")
async def download_file(file_name: str):
    """Serve a small fake report as an attachment."""
    remaining_failures = failing_files.get(file_name, 0)
    if remaining_failures > 0:
        failing_files[file_name] = remaining_failures - 1
        logger.info(f"Simulating failure for {file_name} ({remaining_failures - 1} left)")
        return JSONResponse(status_code=503, content={"detail": "Temporarily unavailable"})

    return Response(
        content=f"Mock report {file_name}\n".encode("utf-8"),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@app.post("/files/{file_name}/fail")
async def fail_file(file_name: str, times: int = 1):
    """Make the next `times` downloads of `file_name` fail."""
    failing_files[file_name] = times
    return {"file_name": file_name, "failures": times}


@app.get("/dag-runs")
async def list_dag_runs(limit: int = 20):
    """
    List recently received DAG runs.

    This endpoint is useful for debugging and verifying that
    triggers are being received correctly.
    """
    return {
        "total": len(received_dag_runs),
        "showing": min(limit, len(received_dag_runs)),
        "dag_runs": received_dag_runs[-limit:][::-1]  # Most recent first
    }


@app.delete("/dag-runs")
async def clear_dag_runs():
    """Clear all stored DAG runs."""
    received_dag_runs.clear()
    return {"message": "All DAG runs cleared"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "Mock Airflow and Sintegre",
        "dag_runs_received": len(received_dag_runs)
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
