from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError

from stakepool.api.errors import ApiError
from stakepool.api.responses import PaddedJSONResponse
from stakepool.api.routes import router
from stakepool.api.structured_logging import CONTRACT_ERROR_STATE, RequestLogMiddleware
from stakepool.errors import ContractError
from stakepool.log_events import configure_structured_logging
from stakepool.runtime.host import LocalHost, build_host as _build_host
from stakepool.runtime.node_config import apply_node_config_to_env, load_node_config


def build_host() -> LocalHost:
    """Build the LocalHost for API runtime.

    This wrapper exists so tests can monkeypatch `stakepool.api.app.build_host`
    without reaching into runtime modules.
    """
    cfg = load_node_config()
    apply_node_config_to_env(cfg)
    return _build_host(cfg)


def create_app(*, boot_runtime: bool = True, host: Optional[LocalHost] = None) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load node config and attach a host via build_host()
      - False: attach `host` as given (may be None) for tests
    """
    configure_structured_logging()

    app = FastAPI(title="Stakepool Node API", default_response_class=PaddedJSONResponse)

    if boot_runtime and host is None:
        host = build_host()
    app.state.host = host

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> PaddedJSONResponse:
        return PaddedJSONResponse(status_code=exc.status_code, content=exc.to_json())

    @app.exception_handler(ContractError)
    async def _contract_error(request: Request, exc: ContractError) -> PaddedJSONResponse:
        err = ApiError.from_contract_error(exc)
        setattr(request.state, CONTRACT_ERROR_STATE, (exc.code, exc.reason))
        return PaddedJSONResponse(status_code=err.status_code, content=err.to_json())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> PaddedJSONResponse:
        err = ApiError(422, "invalid_msg", "request_validation", {"errors": jsonable_encoder(exc.errors())})
        return PaddedJSONResponse(status_code=err.status_code, content=err.to_json())

    app.add_middleware(RequestLogMiddleware)

    app.include_router(router, prefix="/v1")

    return app
