"""FastAPI 应用工厂"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from application.sync.services.sync_service import SyncService
from infrastructure.config.settings import Settings, get_settings
from interfaces.api.routes import health_router

logger = logging.getLogger(__name__)


def create_app(
    orchestrator: Optional[SyncService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    创建 FastAPI 应用

    服务启动后在后台启动同步，关闭时停止同步。
    同步启动失败只记录日志，不影响 HTTP 服务。

    Args:
        orchestrator: 同步服务，为 None 时只提供 HTTP 接口
        settings: 应用配置，默认使用全局配置

    Returns:
        FastAPI 实例
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        start_task: Optional[asyncio.Task] = None

        if orchestrator is not None:
            start_task = asyncio.create_task(_start_sync(orchestrator))
        app.state.sync_start_task = start_task

        yield

        if start_task is not None and not start_task.done():
            start_task.cancel()
            try:
                await start_task
            except asyncio.CancelledError:
                pass

        if orchestrator is not None:
            await orchestrator.stop()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="多账号 IMAP 增量同步服务",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)

    return app


async def _start_sync(orchestrator: SyncService) -> None:
    """后台启动同步，任何异常只记录日志"""
    try:
        await orchestrator.start()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.exception(f"Failed to start IMAP sync: {e}")
