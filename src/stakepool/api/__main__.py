# src/stakepool/api/__main__.py
from __future__ import annotations

import uvicorn

from stakepool.env import load_dotenv_if_present


def main() -> None:
    load_dotenv_if_present()

    # Imported after the .env load so node config sees its variables.
    from stakepool.api.app import create_app
    from stakepool.runtime.node_config import load_node_config

    cfg = load_node_config()
    uvicorn.run(create_app(), host=cfg.api_host, port=int(cfg.api_port), log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
