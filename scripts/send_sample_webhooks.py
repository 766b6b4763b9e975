#!/usr/bin/env python3
"""
Sample Webhook Sender

Posts a handful of Sintegre webhooks to a running service so the
download -> upload -> Airflow pipeline can be watched end to end. File URLs
point at the mock server in mock_webhook/server.py.

Run: python scripts/send_sample_webhooks.py
"""
import asyncio
import os
from datetime import datetime, timedelta

import httpx

API_BASE = os.getenv("API_BASE_URL", "http://localhost:8000/api/v1")
FILES_BASE = os.getenv("FILES_BASE_URL", "http://mock_webhook:8001/files")

SAMPLE_PRODUCTS = [
    ("IPDO (Informativo Preliminar Diário da Operação)", "Operação em Tempo Real", "IPDO-20-02-2025.pdf"),
    ("Modelo ETA", "Previsão de Vazões", "Modelo_ETA_20250220.zip"),
    ("Deck NEWAVE Preliminar", "Planejamento da Operação", "deck_newave_2025_02.zip"),
    ("Acompanhamento de Reservatórios", "Operação do Sistema", "reservatorios_2° nível de contingência.pdf"),
]


def build_payload(nome: str, processo: str, file_name: str, day: datetime) -> dict:
    return {
        "nome": nome,
        "processo": processo,
        "dataProduto": day.strftime("%d/%m/%Y"),
        "macroProcesso": "Operação do Sistema",
        "periodicidade": day.strftime("%Y-%m-%dT00:00:00"),
        "periodicidadeFinal": day.strftime("%Y-%m-%dT23:59:59"),
        "url": f"{FILES_BASE}/{file_name}",
    }


async def main():
    today = datetime.now()

    async with httpx.AsyncClient(base_url=API_BASE, timeout=10.0) as client:
        for offset, (nome, processo, file_name) in enumerate(SAMPLE_PRODUCTS):
            payload = build_payload(nome, processo, file_name, today - timedelta(days=offset))
            response = await client.post("/webhooks/sintegre", json=payload)
            response.raise_for_status()
            webhook = response.json()
            print(f"Created {webhook['id']} for '{nome}' ({webhook['downloadStatus']})")

        await asyncio.sleep(3)

        response = await client.get("/webhooks/metrics")
        response.raise_for_status()
        print(f"Metrics: {response.json()['total']}")


if __name__ == "__main__":
    asyncio.run(main())
