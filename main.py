"""
Mail Sync - 多账号 IMAP 增量同步服务入口

运行：
    python main.py

或使用 uvicorn：
    uvicorn main:app --host 0.0.0.0 --port 4000
"""

import uvicorn

from infrastructure.config.settings import get_settings
from infrastructure.containers import bootstrap
from infrastructure.logging.setup import configure_logging
from interfaces.api import create_app

settings = get_settings()
configure_logging(settings.log_level, settings.log_file or None)

# 获取 DI 容器
container = bootstrap().app

# 导出 FastAPI app (用于 uvicorn)
app = create_app(orchestrator=container.sync_orchestrator(), settings=settings)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
