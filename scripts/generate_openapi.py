"""Write the gateway's OpenAPI documents to ``openapi/``.

Produces ``api-gateway.json`` (the gateway's own routes) and
``api-gateway-aggregate.json`` (merged with every reachable downstream
service, exactly as served by the running gateway).
"""

import asyncio
import importlib
import json
from pathlib import Path
from typing import Callable

from fastapi import FastAPI

GATEWAY_FACTORY = "services.api_gateway.app:create_app"


def load_app(factory_path: str) -> FastAPI:
    module_path, factory_name = factory_path.split(":")
    module = importlib.import_module(module_path)
    factory: Callable[[], FastAPI] = getattr(module, factory_name)
    return factory()


async def build_aggregate(app: FastAPI) -> dict:
    document = await app.state.docs_cache.get()
    return document.to_openapi()


def main() -> None:
    out_dir = Path("openapi")
    out_dir.mkdir(exist_ok=True)
    app = load_app(GATEWAY_FACTORY)
    outputs = {
        "api-gateway.json": app.openapi(),
        "api-gateway-aggregate.json": asyncio.run(build_aggregate(app)),
    }
    for name, schema in outputs.items():
        target = out_dir / name
        target.write_text(json.dumps(schema, indent=2))
        print(f"Wrote {target}")


if __name__ == "__main__":
    main()
